import asyncio
import json
from pathlib import Path

import pytest

from fjud.scraper.error_codes import NavigationTimeout, ScrapeError
from fjud.scraper.replay_session import FixtureSession, ReplaySessionFactory, load_fixture_pages

PAGE = """
<html><body>
<form action="next.aspx"><select id="court"><option value="TPS">最高法院</option></select>
<input id="year" type="text"><button id="go">go</button></form>
<div id="text">甲<br>乙<br/>丙</div>
</body></html>
"""


def test_load_fixture_pages(tmp_path: Path) -> None:
    (tmp_path / "a.html").write_text(PAGE, encoding="utf-8")
    (tmp_path / "index.json").write_text(json.dumps({"https://host/a": "a.html"}), encoding="utf-8")

    assert load_fixture_pages(tmp_path) == {"https://host/a": PAGE}


def test_load_fixture_pages_rejects_lists(tmp_path: Path) -> None:
    (tmp_path / "index.json").write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_fixture_pages(tmp_path)


def test_fixture_session_behaves_like_a_page() -> None:
    pages = {"https://host/a": PAGE, "https://host/next.aspx": "<p id='done'>ok</p>"}
    session = FixtureSession(pages)

    async def scenario():
        await session.navigate("https://host/a")
        text = await session.read_text("#text")
        await session.select_option("#court", "TPS")
        await session.fill_field("#year", "108")
        with pytest.raises(ScrapeError):
            await session.select_option("#court", "TPH")
        with pytest.raises(ScrapeError):
            await session.fill_field("#text", "x")
        await session.click("#go", expect_navigation=True)
        return text

    assert asyncio.run(scenario()) == "甲\n乙\n丙"
    assert session.url == "https://host/next.aspx"
    assert session.filled == {"#year": "108"}
    assert session.visits == ["https://host/a", "https://host/next.aspx"]


def test_unknown_url_times_out() -> None:
    with pytest.raises(NavigationTimeout):
        asyncio.run(FixtureSession({}).navigate("https://host/missing"))


def test_factory_tracks_and_closes_sessions() -> None:
    factory = ReplaySessionFactory({})

    async def scenario():
        session = await factory.create()
        assert factory.validate(session)
        await factory.destroy(session)
        return session

    session = asyncio.run(scenario())
    assert factory.created == [session]
    assert not factory.validate(session)
