"""System checks for RBAC configuration."""

from django.core.checks import Error, register
from django.urls import URLPattern, URLResolver, get_resolver

from access_control.permissions import HasAnyPermission
from access_control.registry import get_registry


def _iter_view_classes(patterns):
    for pattern in patterns:
        if isinstance(pattern, URLResolver):
            yield from _iter_view_classes(pattern.url_patterns)
        elif isinstance(pattern, URLPattern):
            callback = pattern.callback
            view_cls = getattr(callback, "cls", None) or getattr(callback, "view_class", None)
            if view_cls is not None:
                yield view_cls


@register()
def rbac_views_declare_permissions(app_configs, **kwargs):
    """Ensure every view gated by HasAnyPermission names registered codes.

    The URL conf is walked so new views are covered without being listed
    here. A gated view must define ``required_permissions`` and each entry
    must be a non-empty sequence of codes known to the registry.
    """
    errors: list[Error] = []
    registry = get_registry()
    seen: set[type] = set()

    for view_cls in _iter_view_classes(get_resolver().url_patterns):
        if view_cls in seen:
            continue
        seen.add(view_cls)
        if HasAnyPermission not in getattr(view_cls, "permission_classes", []):
            continue

        mapping = getattr(view_cls, "required_permissions", None)
        if not mapping:
            errors.append(
                Error(
                    f"{view_cls.__name__} uses HasAnyPermission but does not define required_permissions.",
                    obj=view_cls,
                    id="access_control.E001",
                )
            )
            continue

        for action, codes in mapping.items():
            if isinstance(codes, str) or not codes:
                errors.append(
                    Error(
                        f"{view_cls.__name__}.required_permissions[{action!r}] must be a non-empty sequence.",
                        obj=view_cls,
                        id="access_control.E002",
                    )
                )
                continue
            unknown = registry.unknown_codes(codes)
            if unknown:
                errors.append(
                    Error(
                        f"{view_cls.__name__}.required_permissions[{action!r}] names unknown codes: "
                        f"{', '.join(unknown)}.",
                        obj=view_cls,
                        id="access_control.E002",
                    )
                )

    return errors
