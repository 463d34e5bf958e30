"""Selectors for the FJUD advanced-search portal."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class PortalSelectors:
    """DOM contract of the FJUD portal.

    The advanced search form (``Default_AD.aspx``) posts into a page that
    embeds the listing in an iframe (``qryresultlst.aspx``). The listing
    table interleaves a hidden summary row after every visible ruling row,
    and ruling pages (``data.aspx``) reuse the ``#jud`` id for the text
    container.
    """

    court_select: str = "#jud_court"
    category_checkbox: str = "#vtype_V > input[type=checkbox]"
    submit: str = "#btnQry"
    # start year/month/day then end year/month/day
    date_fields: Tuple[str, ...] = ("#dy1", "#dm1", "#dd1", "#dy2", "#dm2", "#dd2")
    last_page_link: str = "#hlLast"
    result_rows: str = "#jud > tbody > tr"
    copy_permanent_link: str = "#hlCopyWeb"
    permanent_link_field: str = "#txtUrl"
    export_pdf_link: str = "#hlExportPDF"
    ruling_text: str = "#jud"

    def court_option(self, court: str) -> str:
        return f"{self.court_select} > option[value={court}]"


PORTAL_SELECTORS = PortalSelectors()

__all__ = ["PortalSelectors", "PORTAL_SELECTORS"]
