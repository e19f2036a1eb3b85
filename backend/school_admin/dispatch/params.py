"""
Parameter Introspector
=======================

What:  Reads a handler's formal parameter names without calling it.
Why:   The parameter list is the only routing signal for middlewares: a
       handler that declares ``__long_token`` gets the token middleware,
       one that does not, doesn't.
How:   inspect.signature(), with Python's private-name mangling undone.

Name mangling:
    Inside a class body Python rewrites ``__long_token`` to
    ``_School__long_token``. Handlers live on manager classes, so the
    introspector maps mangled names back to the name written in the source
    and ``bind_arguments`` maps them forward again when calling.
"""

import inspect
import logging
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

SPECIAL_PREFIX = "__"

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def _unwrap(fn: Callable) -> Callable:
    """Bound methods share one cache entry per underlying function."""
    return getattr(fn, "__func__", fn)


def _read_signature(fn: Callable) -> Optional[Tuple[Tuple[str, inspect.Parameter], ...]]:
    """
    Returns ((logical_name, parameter), ...) for ``fn``, or None when the
    signature cannot be read. ``self``/``cls`` of a plain function defined
    in a class is kept here; callers work on bound methods.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    owners = _owner_candidates(fn)
    return tuple(
        (_unmangle(param.name, owners), param) for param in signature.parameters.values()
    )


_declared = lru_cache(maxsize=1024)(_read_signature)


def _owner_candidates(fn: Callable) -> Tuple[str, ...]:
    # Any enclosing qualname segment may be the class that mangled the name;
    # the innermost one wins.
    qualname = getattr(fn, "__qualname__", "") or ""
    parts = [p for p in qualname.split(".")[:-1] if p and p != "<locals>"]
    return tuple(reversed(parts))


def _unmangle(name: str, owners: Tuple[str, ...]) -> str:
    if not name.startswith("_") or name.startswith(SPECIAL_PREFIX):
        return name
    for owner in owners:
        prefix = "_" + owner.lstrip("_") + SPECIAL_PREFIX
        if name.startswith(prefix) and len(name) > len(prefix):
            return SPECIAL_PREFIX + name[len(prefix):]
    return name


def _parameters(fn: Callable) -> Optional[List[Tuple[str, inspect.Parameter]]]:
    if not callable(fn):
        return None
    target = _unwrap(fn)
    try:
        declared = _declared(target)
    except TypeError:
        # unhashable callable
        declared = _read_signature(target)
    if declared is None:
        return None
    params = list(declared)
    # Bound method: drop the parameter already bound to the instance.
    if inspect.ismethod(fn) and params:
        params = params[1:]
    return params


def get_param_names(fn: Callable) -> List[str]:
    """
    Ordered formal parameter names of ``fn`` as declared in its source.

    Defaults are not part of the name; ``*args``/``**kwargs`` are skipped.
    Returns [] when ``fn`` is not callable or its signature is unreadable.
    """
    params = _parameters(fn)
    if params is None:
        return []
    return [name for name, param in params if param.kind not in _SKIPPED_KINDS]


def special_params(names: List[str], prefix: str = SPECIAL_PREFIX) -> List[str]:
    """Filters ``names`` down to special parameters, keeping their order."""
    return [name for name in names if name.startswith(prefix) and len(name) > len(prefix)]


def bind_arguments(fn: Callable, bag: Mapping[str, Any]) -> Tuple[List[Any], Dict[str, Any]]:
    """
    Builds (args, kwargs) to call ``fn`` with the values of ``bag``.

    - a declared parameter found in ``bag`` receives that value
    - a declared parameter missing from ``bag`` receives None, unless it
      has a default (then the default applies)
    - a ``**kwargs`` handler also receives every unclaimed bag key
    - an unreadable signature receives the whole bag as keyword arguments
    """
    params = _parameters(fn)
    if params is None:
        return [], dict(bag)

    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    claimed = set()
    accepts_extra = False

    for name, param in params:
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            accepts_extra = True
            continue
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        claimed.add(name)
        if name in bag:
            value = bag[name]
        elif param.default is inspect.Parameter.empty:
            value = None
        else:
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(param.default)
            continue
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            args.append(value)
        else:
            kwargs[param.name] = value

    if accepts_extra:
        for key, value in bag.items():
            if key not in claimed and key.isidentifier():
                kwargs[key] = value

    return args, kwargs
