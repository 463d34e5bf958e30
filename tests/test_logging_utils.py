from fjud.scraper import logging_utils, utils


def test_crawl_event_label_and_fields(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._crawl_event("pool", kind="create", size=2)

    assert events == ["[FJUD][POOL] kind='create', size=2"]


def test_crawl_event_survives_bad_repr(monkeypatch):
    class Unprintable:
        def __repr__(self):
            raise RuntimeError("boom")

    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._crawl_event("run", value=Unprintable())

    assert events == []


def test_log_line_writes_to_current_file(_isolated_log):
    utils.log_line("[RUN] hello")

    for handler in utils.LOGGER.handlers:
        handler.flush()
    assert utils.get_current_log_path() == _isolated_log
    assert "[RUN] hello" in _isolated_log.read_text(encoding="utf-8")


def test_setup_run_logger_rotates_into_directory(tmp_path):
    path = utils.setup_run_logger(tmp_path / "logs")

    assert path.parent == tmp_path / "logs"
    assert path.name.startswith("crawl_")
    assert utils.get_current_log_path() == path


def test_sanitize_filename_component_keeps_case_number():
    assert utils.sanitize_filename_component("最高法院 108 年度台抗字第 487 號民事裁定") == (
        "最高法院 108 年度台抗字第 487 號民事裁定"
    )
    assert utils.sanitize_filename_component("a/b:c\n") == "a b c"
    assert utils.sanitize_filename_component(None) == ""
