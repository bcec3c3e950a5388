"""
Built-in tender source definitions.

One entry per campus website. Each entry pins down the listing URL and
the markup quirks of that site; YAML files in ``sources_dir`` can
override any of them by ``id``.
"""

from __future__ import annotations

from .models import (
    CellClassStrategy,
    ColumnTableStrategy,
    EnumerationConfig,
    LinkListStrategy,
    SourceConfig,
)

# Four-column "Institute.php?view=Tenders" layout shared by the RGUKT
# main site and RK Valley: description, posted, closing, documents.
_INSTITUTE_TABLE = ColumnTableStrategy(
    row_selectors=["table tr"],
    skip_rows=1,
    min_cells=4,
    exact_cells=4,
    links_column=3,
)

DEFAULT_SOURCES: list[SourceConfig] = [
    SourceConfig(
        id="basar",
        name="RGUKT Basar",
        base_url="https://www.rgukt.ac.in",
        listing_path="/tenders.html",
        official_url="https://www.rgukt.ac.in/tenders.html",
        strategy=LinkListStrategy(
            row_selectors=["table.table tbody tr", "table tbody tr", "table tr"],
            date_selector="font",
            date_strip_chars=":",
        ),
        scrape_interval_minutes=30,
        priority=1,
    ),
    SourceConfig(
        id="ongole",
        name="RGUKT Ongole",
        base_url="https://www.rguktong.ac.in",
        listing_path="/instituteinfo.php?data=tenders",
        official_url="https://www.rguktong.ac.in/instituteinfo.php?data=tenders",
        strategy=CellClassStrategy(
            row_selectors=[
                ".table.table-hover.table-responsive.table-bordered.tenders-table tbody tr",
                ".tenders-table tbody tr",
                "table tbody tr",
            ],
            name_selector="td.tender-info",
            posted_selector="td.color-green",
            closing_selector="td.color-red",
            links_selector="td.tender-detail a",
            strip_from_name=["i"],
            strip_from_link_text=["img"],
            require_all_fields=True,
        ),
        scrape_interval_minutes=30,
        priority=1,
    ),
    SourceConfig(
        id="rkvalley",
        name="RGUKT RK Valley",
        base_url="https://www.rguktrkv.ac.in",
        listing_path="/Institute.php?view=Tenders",
        official_url="https://www.rguktrkv.ac.in/Institute.php?view=Tenders",
        strategy=_INSTITUTE_TABLE,
        scrape_interval_minutes=45,
        priority=2,
    ),
    SourceConfig(
        id="sklm",
        name="RGUKT Srikakulam",
        base_url="https://rguktsklm.ac.in",
        listing_path="/tenders/",
        link_base_url="https://rguktsklm.ac.in/tenders/",
        official_url="https://rguktsklm.ac.in/tenders/",
        strategy=CellClassStrategy(
            row_selectors=["#tbltenders tbody tr", "table tbody tr"],
            name_selector="td:nth-child(1) div.d-flex.fw-bold",
            posted_selector="td:nth-child(2) div.text-success",
            closing_selector="td:nth-child(3) div.text-warning",
            links_selector="td:nth-child(4) a",
            onclick_pattern=r"link\([^,]+,\s*'([^']+)'\)",
            onclick_url_base="https://rguktsklm.ac.in/tenders",
        ),
        scrape_interval_minutes=45,
        priority=2,
    ),
    SourceConfig(
        id="nuzvidu",
        name="RGUKT Nuzvidu",
        base_url="https://rguktn.ac.in",
        listing_path="/tenders/",
        link_base_url="https://rguktn.ac.in/tenders/",
        official_url="https://rguktn.ac.in/tenders/",
        strategy=ColumnTableStrategy(
            row_selectors=[
                "table tbody tr",
                ".tender-table tr",
                "#tenders-table tr",
                ".tenders-table tbody tr",
                "table tr",
            ],
            min_cells=3,
            min_name_length=6,
            scan_all_cells_for_documents=True,
            missing_date_text="Not specified",
            page_link_text="View Details",
        ),
        enumeration=EnumerationConfig(
            alternative_paths=[
                "/tenders",
                "/tender",
                "/tenders.php",
                "/Institute.php?view=Tenders",
            ],
        ),
        scrape_interval_minutes=60,
        priority=3,
    ),
    SourceConfig(
        id="rgukt-main",
        name="RGUKT Main",
        base_url="https://www.rgukt.in",
        listing_path="/Institute.php?view=Tenders",
        official_url="https://www.rgukt.in/Institute.php?view=Tenders",
        strategy=_INSTITUTE_TABLE,
        scrape_interval_minutes=60,
        priority=4,
        enabled=False,
    ),
]
