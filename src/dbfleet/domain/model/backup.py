"""Backup schedule and policy records shared between deployments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from dbfleet.domain.model.enums import CloudProvider
from dbfleet.domain.model.record import Record, ResourceRef


@dataclass(frozen=True, slots=True, kw_only=True)
class BackupPolicyItem:
    frequency_type: str
    frequency_interval: int
    retention_unit: str
    retention_value: int


@dataclass(frozen=True, slots=True, kw_only=True)
class CopySetting:
    cloud_provider: CloudProvider
    region_name: str
    should_copy_oplogs: bool = False
    frequencies: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class BackupScheduleSpec:
    """The provider-side schedule of one deployment, minus server-assigned fields."""

    auto_export_enabled: bool = False
    reference_hour_of_day: int | None = None
    reference_minute_of_hour: int | None = None
    restore_window_days: int | None = None
    use_org_and_group_names_in_export_prefix: bool = False
    copy_settings: tuple[CopySetting, ...] = ()
    policy_items: tuple[BackupPolicyItem, ...] = ()


@dataclass(eq=False, kw_only=True)
class BackupPolicy(Record):
    """Shared policy; ``backup_schedule_ids`` lists the schedules that reference it."""

    KIND: ClassVar[str] = "BackupPolicy"

    items: tuple[BackupPolicyItem, ...] = ()
    backup_schedule_ids: list[str] = field(default_factory=list)

    @property
    def dependents(self) -> list[str]:
        return self.backup_schedule_ids

    @dependents.setter
    def dependents(self, value: list[str]) -> None:
        self.backup_schedule_ids = value


@dataclass(eq=False, kw_only=True)
class BackupSchedule(Record):
    """Shared schedule; ``deployment_ids`` lists the deployments that reference it."""

    KIND: ClassVar[str] = "BackupSchedule"

    policy_ref: ResourceRef
    auto_export_enabled: bool = False
    reference_hour_of_day: int | None = None
    reference_minute_of_hour: int | None = None
    restore_window_days: int | None = None
    use_org_and_group_names_in_export_prefix: bool = False
    copy_settings: tuple[CopySetting, ...] = ()
    update_snapshots: bool = False
    deployment_ids: list[str] = field(default_factory=list)

    @property
    def dependents(self) -> list[str]:
        return self.deployment_ids

    @dependents.setter
    def dependents(self, value: list[str]) -> None:
        self.deployment_ids = value

    def to_spec(self, policy: BackupPolicy) -> BackupScheduleSpec:
        return BackupScheduleSpec(
            auto_export_enabled=self.auto_export_enabled,
            reference_hour_of_day=self.reference_hour_of_day,
            reference_minute_of_hour=self.reference_minute_of_hour,
            restore_window_days=self.restore_window_days,
            use_org_and_group_names_in_export_prefix=self.use_org_and_group_names_in_export_prefix,
            copy_settings=self.copy_settings,
            policy_items=policy.items,
        )
