"""Domain layer for ledgerimport application."""

_SERVICES = {
    "AccountService": "ledgerimport.domain.account",
    "CategoryService": "ledgerimport.domain.category",
    "PreviewService": "ledgerimport.domain.preview",
    "AccountConflictService": "ledgerimport.domain.account_conflicts",
    "ImportCommitService": "ledgerimport.domain.import_commit",
    "ImportSettingsService": "ledgerimport.domain.import_settings",
    "ImportSession": "ledgerimport.domain.session",
}

__all__ = list(_SERVICES)


# Services import the formats package, which imports domain.entities;
# resolve them lazily to keep that cycle open.
def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module
        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
