import logging

import pytest

from hierarchy_toolkit import logging_config
from hierarchy_toolkit.logging_config import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    touched = []
    yield touched
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
    for name in touched:
        logger = logging.getLogger(name)
        logger.setLevel(logging.NOTSET)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_setup_logging_writes_to_log_dir(fresh_config, tmp_path, monkeypatch, restore_logging):
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("HIERARCHY_TOOLKIT_LOG_DIR", str(log_dir))
    restore_logging.extend([
        "hierarchy_toolkit.ui.controllers.drag_controller",
        "hierarchy_toolkit.core.services.tree_operations_service",
    ])

    setup_logging()
    logging.getLogger("hierarchy_toolkit.test").warning("hello file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_file = log_dir / "hierarchy_toolkit.log"
    assert log_file.exists()
    assert "hello file" in log_file.read_text(encoding="utf-8")
    # The cached config keeps its placeholder
    handlers = logging_config.ConfigManager().get_logging_config()["handlers"]
    assert handlers["file"]["filename"] == "app.log"


def test_minimal_fallback_when_config_missing(monkeypatch, tmp_path, restore_logging):
    monkeypatch.setenv("HIERARCHY_TOOLKIT_LOG_DIR", str(tmp_path))

    class EmptyConfig:
        def get_logging_config(self):
            return {}

    monkeypatch.setattr(logging_config, "ConfigManager", EmptyConfig)

    setup_logging()

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)


def test_debug_overrides(monkeypatch, restore_logging):
    monkeypatch.setenv("HIERARCHY_DEBUG_DRAG", "true")
    monkeypatch.setenv("HIERARCHY_DEBUG_MODULES", "hierarchy_toolkit.core.patches, ")
    restore_logging.extend([
        "hierarchy_toolkit.ui.controllers.drag_controller",
        "hierarchy_toolkit.core.projection",
        "hierarchy_toolkit.core.patches",
    ])

    logging_config._apply_debug_overrides()

    for name in restore_logging:
        assert logging.getLogger(name).level == logging.DEBUG
