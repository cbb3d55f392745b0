"""
Alert conflation for capwatch.

This module reduces a raw alert collection to one current record
per logical event. Alerts are grouped by a base title with status
and kind tokens stripped; within a group an active alert always
beats a cancelled one, and the most recent alert wins within the
same status class.
"""

import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Alert
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.conflation")

# 상태/시제 토큰 (긴 구절 우선)
STATUS_TOKENS = (
    "mis à jour", "en vigueur", "in effect", "annulé", "terminé", "émis",
    "cancelled", "canceled", "updated", "issued", "ended",
    "extended", "amended", "continued",
)

# 경보 종류 토큰
KIND_TOKENS = (
    "avertissement de", "veille de", "bulletin de", "alerte de",
    "warning", "watch", "statement", "advisory",
)

CANCELLATION_TOKENS = ("ended", "cancelled", "canceled", "annulé", "terminé")


def _token_pattern(tokens) -> re.Pattern:
    # 단어 단위로만 일치 ("extended" 안의 "ended" 제외)
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in tokens) + r")\b")


_STATUS_RE = _token_pattern(STATUS_TOKENS)
_KIND_RE = _token_pattern(KIND_TOKENS)
_CANCELLATION_RE = _token_pattern(CANCELLATION_TOKENS)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def base_title(title: str) -> str:
    """
    상태/종류 토큰을 제거한 그룹 키를 계산합니다.

    Args:
        title: 경보 제목

    Returns:
        소문자 기본 제목 (예: "Winter Storm Warning in effect" → "winter storm")
    """
    lowered = (title or "").lower()
    stripped = _STATUS_RE.sub(" ", lowered)
    stripped = _KIND_RE.sub(" ", stripped)
    return " ".join(stripped.split())


def is_cancelled(alert: Alert) -> bool:
    """제목에 취소/종료 토큰이 있거나 Cancel 메시지이면 True."""
    if alert.msg_type.lower() == "cancel":
        return True
    lowered = (alert.title or "").lower()
    return _CANCELLATION_RE.search(lowered) is not None


def _recency_key(alert: Alert) -> Tuple[datetime, str]:
    # sent → effective → 최소 시각, 동률은 id 로 결정
    stamp = alert.timestamp or _EPOCH
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return (stamp, alert.id)


def _most_recent(alerts: List[Alert]) -> Optional[Alert]:
    if not alerts:
        return None
    return max(alerts, key=_recency_key)


def conflate(alerts: Iterable[Alert]) -> List[Alert]:
    """
    기본 제목별로 하나의 현재 경보만 남깁니다.

    활성 경보가 하나라도 있으면 가장 최근의 활성 경보를, 없으면 가장 최근의
    취소 경보를 남깁니다. 결과는 그룹이 처음 등장한 순서를 따릅니다.

    Args:
        alerts: 원시 경보 목록

    Returns:
        그룹당 하나의 경보 목록
    """
    groups: Dict[str, List[Alert]] = {}
    for alert in alerts:
        groups.setdefault(base_title(alert.title), []).append(alert)

    result: List[Alert] = []
    for key, members in groups.items():
        active = [a for a in members if not is_cancelled(a)]
        chosen = _most_recent(active) or _most_recent(members)
        result.append(chosen)
        if len(members) > 1:
            log.debug(f"경보 병합 base_title:{key!r} members:{len(members)} kept:{chosen.id}")

    return result


def prune_superseded(alerts: Iterable[Alert]) -> List[Alert]:
    """
    다른 경보의 references 에 등장하는(대체/취소된) 경보를 제거합니다.

    Args:
        alerts: 원시 경보 목록

    Returns:
        대체되지 않은 경보 목록
    """
    alerts = list(alerts)
    referenced = {ref for alert in alerts for ref in alert.references}
    kept = [a for a in alerts if a.id not in referenced]
    if len(kept) != len(alerts):
        log.debug(f"참조로 대체된 경보 제거 removed:{len(alerts) - len(kept)}")
    return kept


def drop_expired(alerts: Iterable[Alert], now: datetime) -> List[Alert]:
    """만료 시각이 지난 경보를 제거합니다 (만료 시각이 없으면 유지)."""
    return [a for a in alerts if a.expires is None or a.expires > now]
