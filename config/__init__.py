"""YAML configuration for the detection pipeline."""

__all__ = ["ConfigController", "get_config"]


def get_config() -> dict:
    """Return the loaded configuration from the shared controller."""

    from config.controller import ConfigController

    return ConfigController.get_instance().get_config()


def __getattr__(name: str):
    if name == "ConfigController":
        from config.controller import ConfigController

        return ConfigController
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
