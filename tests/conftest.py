from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Dict

import pytest

from fjud.scraper import utils

ORIGIN = "https://law.judicial.gov.tw"
SEARCH_URL = f"{ORIGIN}/FJUD/Default_AD.aspx"
RESULT_URL = f"{ORIGIN}/FJUD/qryresult.aspx"
FRAME_URL = f"{ORIGIN}/FJUD/qryresultlst.aspx?ty=JUDBOOK&q=5b1c"
LISTING_URL = FRAME_URL + "&sort=DS&page={}"

RULING_487 = "\n".join(
    [
        "裁判字號：",
        "最高法院 108 年台抗字第 487 號民事裁定",
        "裁判日期：",
        "民國 108 年 07 月 10 日",
        "裁判案由：",
        "聲請拍賣抵押物強制執行",
        "最高法院民事裁定　　108年度台抗字第487號",
        "再 抗告 人　鄭鴻滄",
        "　　　　　　鄭鴻忠",
        "共同代理人　李秉哲律師",
        "上列再抗告人因與高秀英間聲請拍賣抵押物強制執行事件，對於",
        "中華民國108年2月13日臺灣高等法院臺中分院裁定（108 年度抗",
        "字第10號），提起再抗告，本院裁定如下：",
        "    主  文",
        "再抗告駁回。",
        "再抗告程序費用由再抗告人負擔。",
        "    理  由",
        "本件再抗告意旨，指摘原裁定違背法令，聲明廢棄，非有理由",
        "。",
        "據上論結，本件再抗告為無理由。依民事訴訟法第495條之1第2項",
        "，裁定如主文。",
        "中    華    民    國   108    年    7     月    10    日",
        "最高法院民事第二庭",
        "審判長法官  陳  重  瑜",
        "法官  吳  謀  焰",
        "本件正本證明與原本無異",
        "書  記  官",
        "中    華    民    國   108    年    7     月    22    日",
    ]
)

RULING_512 = "本件內容無法辨識"


def listing_link(number: int) -> str:
    return f"{ORIGIN}/FJUD/data.aspx?ty=JD&id=TPSV%2c108%2c{number}"


def permanent_link(number: int) -> str:
    return f"{ORIGIN}/FJUD/data.aspx?ty=JD&id=TPSV%2c108%2c{number}%2c20190710%2c1"


def case_number(number: int) -> str:
    return f"最高法院 108 年度台抗字第 {number} 號民事裁定"


def _listing_rows(entries) -> str:
    rows = ["<tr><th>序號</th><th>裁判字號</th><th>裁判日期</th><th>裁判案由</th></tr>"]
    for index, number in enumerate(entries, start=1):
        rows.append(
            f'<tr><td>{index}.</td>'
            f'<td><a id="hlTitle" href="data.aspx?ty=JD&amp;id=TPSV%2c108%2c{number}">'
            f"{case_number(number)}</a>（{number % 50 + 3}K）</td>"
            f"<td>108.07.10</td><td>聲請拍賣抵押物強制執行</td></tr>"
        )
        rows.append('<tr><td colspan="4">summary</td></tr>')
    return '<table id="jud"><tbody>' + "".join(rows) + "</tbody></table>"


def _detail_page(value: str) -> str:
    return (
        '<html><body><a id="hlCopyWeb" href="#">複製連結</a>'
        f'<input id="txtUrl" type="text" value="{value}"></body></html>'
    )


def _ruling_page(number: int, text: str) -> str:
    body = "<br>".join(text.split("\n"))
    return (
        "<html><body>"
        f'<a id="hlExportPDF" href="/EXPORTFILE/reformat.aspx?type=JD&amp;id=TPSV%2c108%2c{number}">PDF</a>'
        f'<div id="jud"><div class="htmlcontent">{body}</div></div>'
        "</body></html>"
    )


SEARCH_PAGE = """
<html><body>
<form id="form1" method="post" action="qryresult.aspx">
  <select id="jud_court">
    <option value="">請選擇</option>
    <option value="TPS">最高法院</option>
    <option value="TPH">臺灣高等法院</option>
  </select>
  <div id="vtype_V"><input type="checkbox" value="V">民事</div>
  <input id="dy1" type="text"><input id="dm1" type="text"><input id="dd1" type="text">
  <input id="dy2" type="text"><input id="dm2" type="text"><input id="dd2" type="text">
  <input id="btnQry" type="submit" value="送出查詢">
</form>
</body></html>
"""

RESULT_PAGE = '<html><body><iframe id="iframe-data" src="qryresultlst.aspx?ty=JUDBOOK&amp;q=5b1c"></iframe></body></html>'

FRAME_PAGE = (
    "<html><body>"
    '<a id="hlLast" href="qryresultlst.aspx?ty=JUDBOOK&amp;q=5b1c&amp;sort=DS&amp;page=2">最後一頁</a>'
    "</body></html>"
)


def build_portal_pages() -> Dict[str, str]:
    """A two-page result set.

    Page 1 lists 487 and 512, page 2 lists 530, 600 and 487 again.
    600 never yields a permanent link and 530's ruling page is missing.
    512's text has no recognisable structure.
    """

    pages = {
        SEARCH_URL: SEARCH_PAGE,
        RESULT_URL: RESULT_PAGE,
        FRAME_URL: FRAME_PAGE,
        LISTING_URL.format(1): _listing_rows([487, 512]),
        LISTING_URL.format(2): _listing_rows([530, 600, 487]),
        listing_link(600): _detail_page(""),
        permanent_link(487): _ruling_page(487, RULING_487),
        permanent_link(512): _ruling_page(512, RULING_512),
    }
    for number in (487, 512, 530):
        pages[listing_link(number)] = _detail_page(permanent_link(number).replace("&", "&amp;"))
    return pages


@pytest.fixture(autouse=True)
def _isolated_log(tmp_path_factory: pytest.TempPathFactory) -> Path:
    log_path = tmp_path_factory.mktemp("logs") / "test.log"
    utils._configure_logger(log_path)
    return log_path


@pytest.fixture
def portal() -> SimpleNamespace:
    return SimpleNamespace(
        pages=build_portal_pages(),
        search_url=SEARCH_URL,
        frame_url=FRAME_URL,
        listing_url=LISTING_URL,
        listing_link=listing_link,
        permanent_link=permanent_link,
        case_number=case_number,
        ruling_487=RULING_487,
    )
