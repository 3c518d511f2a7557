"""Filter + rank pipeline — pure functions over the firm DataFrame."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum

import pandas as pd

from firm_enrich.models import Criteria

logger = logging.getLogger(__name__)


class RankKey(str, Enum):
    AUM = "AUM"
    LATEST_FUND_SIZE = "LATEST_FUND_SIZE"
    CAPITAL_RAISED = "CAPITAL_RAISED"
    PEI_RANK = "PEI_RANK"


DEFAULT_PRIORITY: tuple[RankKey, ...] = (
    RankKey.AUM,
    RankKey.LATEST_FUND_SIZE,
    RankKey.CAPITAL_RAISED,
    RankKey.PEI_RANK,
)

_ALIASES: dict[str, RankKey] = {"RANK": RankKey.PEI_RANK}

# RankKey -> (canonical column key, ascending)
_SORT_SPEC: dict[RankKey, tuple[str, bool]] = {
    RankKey.AUM: ("aum", False),
    RankKey.LATEST_FUND_SIZE: ("latest_fund_size", False),
    RankKey.CAPITAL_RAISED: ("capital_raised", False),
    RankKey.PEI_RANK: ("rank", True),  # 1 is best
}


# ── Priority parsing ────────────────────────────────────────────


def to_rank_key(token: str) -> RankKey | None:
    """Return the key for *token*, or ``None`` when it is not recognised."""
    key = "_".join(token.strip().upper().split())
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return RankKey(key)
    except ValueError:
        return None


def parse_priority(raw: str | Sequence[str] | None) -> list[RankKey]:
    """Parse a comma-separated priority list.

    Unknown keys are dropped (with a log line, never an error) and repeats
    collapse to their first position. Blank input yields the default order.
    """
    if raw is None:
        return list(DEFAULT_PRIORITY)
    tokens = raw.split(",") if isinstance(raw, str) else list(raw)
    tokens = [t for t in tokens if t.strip()]
    if not tokens:
        return list(DEFAULT_PRIORITY)

    keys: list[RankKey] = []
    for token in tokens:
        key = to_rank_key(token)
        if key is None:
            logger.info("Ignoring unknown priority key %r", token.strip())
            continue
        if key not in keys:
            keys.append(key)
    return keys


# ── Filter / sort ───────────────────────────────────────────────


def filter_firms(
    df: pd.DataFrame, criteria: Criteria, field_headers: Mapping[str, str]
) -> pd.DataFrame:
    """Return the rows of *df* that satisfy *criteria*."""
    if df.empty:
        return df.copy()

    mask = pd.Series(True, index=df.index)
    if criteria.region_equals:
        region = df[field_headers["region"]].astype("string").fillna("").str.strip()
        mask &= region.str.lower() == criteria.region_equals.lower()

    thresholds = (
        ("aum", criteria.min_aum),
        ("latest_fund_size", criteria.min_latest_fund_size),
        ("capital_raised", criteria.min_capital_raised),
    )
    for key, minimum in thresholds:
        values = pd.to_numeric(df[field_headers[key]], errors="coerce").fillna(0)
        mask &= values >= minimum

    if criteria.focus_contains:
        focus = df[field_headers["focus"]].astype("string").fillna("").str.lower()
        mask &= focus.str.contains(criteria.focus_contains.lower(), regex=False)

    return df.loc[mask.fillna(False)].reset_index(drop=True)


def rank_firms(
    df: pd.DataFrame, priority: Sequence[RankKey], field_headers: Mapping[str, str]
) -> pd.DataFrame:
    """Sort *df* by *priority*; metrics descend, rank ascends. Ties keep input order."""
    if df.empty or not priority:
        return df.reset_index(drop=True)

    by: list[str] = []
    ascending: list[bool] = []
    for key in priority:
        column_key, asc = _SORT_SPEC[key]
        header = field_headers[column_key]
        if header not in by:
            by.append(header)
            ascending.append(asc)
    return df.sort_values(by=by, ascending=ascending, kind="stable").reset_index(drop=True)


# ── Output column order ─────────────────────────────────────────


def order_columns(
    headers: Sequence[str],
    priority: Sequence[RankKey],
    field_headers: Mapping[str, str],
) -> list[str]:
    """Rank first, then metrics in priority order, then the rest as they were."""
    ordered: list[str] = [field_headers["rank"]]
    for key in priority:
        header = field_headers[_SORT_SPEC[key][0]]
        if header not in ordered:
            ordered.append(header)
    for header in headers:
        if header and header not in ordered:
            ordered.append(header)
    return ordered


def select_firms(
    df: pd.DataFrame,
    criteria: Criteria,
    field_headers: Mapping[str, str],
) -> pd.DataFrame:
    """Filter, rank and reorder columns in one call."""
    priority = parse_priority(criteria.priority)
    result = rank_firms(filter_firms(df, criteria, field_headers), priority, field_headers)
    return result[order_columns(list(df.columns), priority, field_headers)]
