from __future__ import annotations

"""Selectors for the published-FIR search page."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """Element selectors of the ASP.NET search form and results grid.

    The grid is a WebForms GridView: each data row has ten cells and the last
    one holds an ``<input>`` whose click posts back and returns the FIR PDF.
    The pager renders other pages as links and the current page as a span.
    """

    page_size: str = "#ContentPlaceHolder1_ucRecordView_ddlPageSize"
    from_date: str = "#ContentPlaceHolder1_txtDateOfRegistrationFrom"
    to_date: str = "#ContentPlaceHolder1_txtDateOfRegistrationTo"
    district: str = "#ContentPlaceHolder1_ddlDistrict"
    search_button: str = "#ContentPlaceHolder1_btnSearch"
    results_table: str = "#ContentPlaceHolder1_gdvDeadBody"
    pager: str = ".gridPager"
    pager_links: str = ".gridPager a"
    pager_expand_label: str = "..."

    def download_trigger(self, element_id: str) -> str:
        """Selector for a row's download input, safe for ids with ``$``/``:``."""

        return f'[id="{element_id}"]'


PORTAL_SELECTORS = PortalSelectors()

__all__ = [
    "PortalSelectors",
    "PORTAL_SELECTORS",
]
