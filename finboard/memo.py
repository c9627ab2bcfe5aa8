from functools import wraps


def memoized_view(method):
    """Cache a zero-argument view until its owner's version key changes.

    The owner provides `version_key()` (any hashable) and a `_memo` dict.
    """
    name = method.__name__

    @wraps(method)
    def wrapper(self):
        key = self.version_key()
        hit = self._memo.get(name)
        if hit is not None and hit[0] == key:
            return hit[1]
        value = method(self)
        self._memo[name] = (key, value)
        return value

    return wrapper
