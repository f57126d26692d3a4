# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""Groups a project's task records into the board shown by the front-end."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from shared.records import Record, as_number

GROUP_LINK_FIELD = "task_groups"
GROUP_NAME_FIELD = "group_name"
GROUP_ORDER_FIELD = "group_order"
GROUPING_FIELDS = (GROUP_LINK_FIELD, GROUP_NAME_FIELD, GROUP_ORDER_FIELD)

UNNAMED_GROUP = "Unnamed Group"

Task = Dict[str, Any]


@dataclass
class BoardGroup:
    group_id: str
    group_name: str
    group_order: float
    tasks: List[Task] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "task_groups": self.group_id,
            "group_name": self.group_name,
            "group_order": self.group_order,
            "tasks": self.tasks,
        }


@dataclass
class Board:
    groups: List[BoardGroup]
    ungrouped: List[Task]

    def as_dict(self) -> dict:
        return {
            "groups": [group.as_dict() for group in self.groups],
            "ungrouped": self.ungrouped,
        }


def _first(value: Any) -> Any:
    # Lookup fields arrive as single-element lists.
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _order_key(task: Task) -> float:
    return as_number(task.get("order"))


def _renumber(tasks: List[Task]) -> List[Task]:
    ordered = sorted(tasks, key=_order_key)
    for index, task in enumerate(ordered):
        task["order"] = index
    return ordered


def transform(records: Iterable[Record]) -> Board:
    """Build a Board from task records.

    Tasks linked to a group land in that group, the rest in ``ungrouped``.
    The grouping fields are stripped from every task, and ``order`` is
    rewritten to a dense 0-based rank inside each bucket. Groups are sorted by
    their ``group_order``; ties keep discovery order.
    """
    groups: Dict[str, BoardGroup] = {}
    ungrouped: List[Task] = []

    for record in records:
        task = {
            name: value
            for name, value in record.fields.items()
            if name not in GROUPING_FIELDS
        }
        group_id = _first(record.fields.get(GROUP_LINK_FIELD))
        if not group_id:
            ungrouped.append(task)
            continue

        if group_id not in groups:
            group_order = as_number(_first(record.fields.get(GROUP_ORDER_FIELD)))
            groups[group_id] = BoardGroup(
                group_id=group_id,
                group_name=_first(record.fields.get(GROUP_NAME_FIELD))
                or UNNAMED_GROUP,
                group_order=group_order,
            )
        groups[group_id].tasks.append(task)

    for group in groups.values():
        group.tasks = _renumber(group.tasks)

    return Board(
        groups=sorted(groups.values(), key=lambda group: group.group_order),
        ungrouped=_renumber(ungrouped),
    )
