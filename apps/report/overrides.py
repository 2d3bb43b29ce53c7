# =============================================================================
# 模块: apps/report/overrides.py
# 功能: 报告检查项的人工覆盖 (manualChecks)
# 架构角色: 客户端侧编辑层, 位于报告展示与 ReportClient.update_report 之间。
# 规则:
#   - 覆盖表为稀疏映射 {sectionKey: bool}, 保存在 reportData["manualChecks"]
#   - 三态切换: 未设置 -> True -> False -> 未设置
#   - 取值优先级: 存在覆盖 (True 或 False) 时以覆盖为准, 否则使用计算值
#   - 键不做校验, 与分析结果中不存在的键对应的覆盖不产生任何效果
#   - 切换只修改本地状态并置 has_unsaved_changes; save() 成功后才清除,
#     保存失败时本地修改与未保存标记均保留
# =============================================================================
"""Manual pass/fail overrides for report checks."""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Mapping, Optional

from .client import ReportClient
from .models import MANUAL_CHECKS_KEY

logger = logging.getLogger(__name__)


def toggle(overrides: Dict[str, bool], key: str) -> Optional[bool]:
    """Advance ``key`` one step in the unset -> True -> False -> unset cycle.

    Mutates ``overrides`` in place.

    Returns:
        Optional[bool]: The new value, ``None`` when the key became unset.
    """
    current = overrides.get(key)
    if current is None:
        overrides[key] = True
        return True
    if current is True:
        overrides[key] = False
        return False
    del overrides[key]
    return None


def resolve(overrides: Mapping[str, bool], key: str, computed: Any) -> Any:
    """Return the manual value for ``key`` if one is set, else ``computed``."""
    if key in overrides and overrides[key] is not None:
        return overrides[key]
    return computed


def extract_overrides(report_data: Optional[Mapping[str, Any]]) -> Dict[str, bool]:
    """Read the override map stored in a report payload.

    Non-boolean entries are ignored.
    """
    if not report_data:
        return {}
    raw = report_data.get(MANUAL_CHECKS_KEY) or {}
    if not isinstance(raw, Mapping):
        return {}
    return {str(k): v for k, v in raw.items() if isinstance(v, bool)}


class ManualCheckEditor:
    """Local editing state for one report's overrides.

    Args:
        report_id: Report being edited.
        report_data: The report's current ``reportData`` (not mutated).
    """

    def __init__(self, report_id: str, report_data: Optional[Mapping[str, Any]]):
        self.report_id = report_id
        self._report_data: Dict[str, Any] = copy.deepcopy(dict(report_data or {}))
        self.overrides: Dict[str, bool] = extract_overrides(report_data)
        self.has_unsaved_changes = False

    def toggle(self, key: str) -> Optional[bool]:
        value = toggle(self.overrides, key)
        self.has_unsaved_changes = True
        return value

    def resolve(self, key: str, computed: Any) -> Any:
        return resolve(self.overrides, key, computed)

    def to_report_data(self) -> Dict[str, Any]:
        """Merge the local overrides into a copy of the payload.

        Computed fields are left untouched; ``manualChecks`` is replaced.
        """
        data = copy.deepcopy(self._report_data)
        data[MANUAL_CHECKS_KEY] = dict(self.overrides)
        return data

    async def save(self, client: ReportClient) -> Dict[str, Any]:
        """Persist the merged payload.

        On failure the local edits and the unsaved flag are kept and the
        error propagates.

        Returns:
            dict: The updated report returned by the API.
        """
        data = self.to_report_data()
        report = await client.update_report(self.report_id, data)
        self._report_data = copy.deepcopy(report.get("reportData") or data)
        self.has_unsaved_changes = False
        logger.info(f"[REPORT {self.report_id}] Saved {len(self.overrides)} manual checks")
        return report
