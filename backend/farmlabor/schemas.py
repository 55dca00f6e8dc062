"""API 請求/回應結構 - Pydantic（工人、出勤、預支、結算、臨時工、分析）"""
from datetime import date, datetime
from decimal import Decimal

# 別名：欄位名 date 與型別 date 會觸發 Pydantic 的 field name clashing，改用 DateType 註解
DateType = date
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from farmlabor.wages.engine import AttendanceFormStatus, WorkStatus


# ---------- 農場 ----------
class FarmCreate(BaseModel):
    name: str = Field(..., min_length=1, description="農場名稱")


class FarmRead(BaseModel):
    id: int
    name: str
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 工作類別 ----------
class WorkTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, description="工作類別名稱（存為小寫）")

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("工作類別名稱不可空白")
        return v


class WorkTypeRead(BaseModel):
    id: int
    name: str
    is_default: bool
    model_config = ConfigDict(from_attributes=True)


# ---------- 工人 ----------
class WorkerBase(BaseModel):
    name: str = Field(..., min_length=1, description="姓名")
    daily_rate: Decimal = Field(..., gt=0, description="標準日薪")


class WorkerCreate(WorkerBase):
    advance_balance: Decimal = Field(Decimal("0"), ge=0, description="期初預支餘額")


class WorkerUpdate(BaseModel):
    """預支餘額不可由此修改，只能經預支/扣款/結算異動"""
    name: Optional[str] = Field(None, min_length=1)
    daily_rate: Optional[Decimal] = Field(None, gt=0)
    is_active: Optional[bool] = None


class WorkerRead(WorkerBase):
    id: int
    advance_balance: Decimal
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 出勤 ----------
class AttendanceRead(BaseModel):
    id: int
    worker_id: int
    farm_ids: List[int]
    date: DateType
    work_status: WorkStatus
    work_type: str
    daily_rate_override: Optional[Decimal] = None
    notes: Optional[str] = None
    earnings: Optional[Decimal] = Field(None, description="依目前日薪/覆寫值計算之當日工資")
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AttendanceEntryItem(BaseModel):
    """出勤登錄表單的一列：長期工人（worker_id）或臨時工（is_temporary + temp_name）"""
    worker_id: Optional[int] = None
    is_temporary: bool = False
    temp_name: Optional[str] = None
    status: AttendanceFormStatus = Field(AttendanceFormStatus.NOT_SET, description="not_set / full_day / half_day / absent")
    salary: Optional[Decimal] = Field(None, description="當日工資（缺勤可不填）")
    advance_deduction: Decimal = Field(Decimal("0"), description="當日預支扣款，會平均分攤到各農場")
    work_type: str = "general"
    hours_worked: Optional[Decimal] = Field(None, ge=0, description="臨時工工時；未填依全天/半天帶入")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_identity(self):
        if self.is_temporary:
            if not (self.temp_name or "").strip():
                raise ValueError("臨時工姓名必填")
        elif self.worker_id is None:
            raise ValueError("請選擇工人")
        return self


class AttendanceBatchCreate(BaseModel):
    date: DateType = Field(..., description="出勤日期")
    farm_ids: List[int] = Field(..., min_length=1, description="工作農場（可複選）")
    entries: List[AttendanceEntryItem] = Field(..., min_length=1)

    @field_validator("farm_ids")
    @classmethod
    def dedupe_farms(cls, v: List[int]) -> List[int]:
        seen: List[int] = []
        for f in v:
            if f not in seen:
                seen.append(f)
        return seen


class AttendanceUpdate(BaseModel):
    status: AttendanceFormStatus
    salary: Optional[Decimal] = None
    date: Optional[DateType] = None
    work_type: Optional[str] = None
    notes: Optional[str] = None


# ---------- 預支/交易 ----------
class AdvanceCreate(BaseModel):
    amount: Decimal = Field(..., description="金額（> 0）")
    date: DateType
    farm_id: Optional[int] = None
    notes: Optional[str] = None


class TransactionRead(BaseModel):
    id: int
    worker_id: int
    farm_id: Optional[int] = None
    date: DateType
    type: str
    amount: Decimal
    settlement_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 臨時工 ----------
class TemporaryWorkerBase(BaseModel):
    farm_id: int
    date: DateType
    name: str = Field(..., min_length=1)
    hours_worked: Decimal = Field(..., ge=0)
    amount_paid: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class TemporaryWorkerCreate(TemporaryWorkerBase):
    pass


class TemporaryWorkerUpdate(BaseModel):
    farm_id: Optional[int] = None
    date: Optional[DateType] = None
    name: Optional[str] = Field(None, min_length=1)
    hours_worked: Optional[Decimal] = Field(None, ge=0)
    amount_paid: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class TemporaryWorkerRead(TemporaryWorkerBase):
    id: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AttendanceBatchResult(BaseModel):
    attendance: List[AttendanceRead] = []
    temporary_entries: List[TemporaryWorkerRead] = []
    transactions: List[TransactionRead] = []


# ---------- 結算 ----------
class AttendanceDetailRead(BaseModel):
    date: DateType
    work_status: WorkStatus
    work_type: str
    rate: Decimal
    earnings: Decimal
    model_config = ConfigDict(from_attributes=True)


class SettlementPreview(BaseModel):
    worker_id: int
    farm_id: Optional[int] = None
    period_start: DateType
    period_end: DateType
    days_worked: Decimal
    gross_amount: Decimal
    advance_balance: Decimal
    attendance_details: List[AttendanceDetailRead] = []
    model_config = ConfigDict(from_attributes=True)


class SettlementConfirm(BaseModel):
    """total_salary 可與試算 gross 不同（操作者手動調整）"""
    worker_id: int
    period_start: DateType
    period_end: DateType
    farm_id: Optional[int] = None
    total_salary: Decimal
    advance_deduction: Decimal = Decimal("0")
    notes: Optional[str] = None


class SettlementRead(BaseModel):
    id: int
    worker_id: int
    farm_id: Optional[int] = None
    period_start: DateType
    period_end: DateType
    days_worked: Decimal
    gross_amount: Decimal
    advance_deducted: Decimal
    net_payment: Decimal
    status: str
    notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 分析 ----------
class WorkTypeCost(BaseModel):
    work_type: str
    total_cost: Decimal
    days_worked: Decimal
    avg_daily_rate: Decimal


class WorkerCost(BaseModel):
    worker_id: int
    worker_name: str
    total_cost: Decimal
    days_worked: Decimal
    advance_recovered: Decimal
    advance_balance: Decimal


class TemporaryWorkerCost(BaseModel):
    name: str
    total_paid: Decimal
    total_hours: Decimal
    entries: int


class LaborCostSummary(BaseModel):
    period_start: DateType
    period_end: DateType
    farm_id: Optional[int] = None
    total_labor_cost: Decimal
    total_days_worked: Decimal
    advance_recovered: Decimal
    temporary_total_paid: Decimal
    by_work_type: List[WorkTypeCost] = []
    by_worker: List[WorkerCost] = []
    temporary_workers: List[TemporaryWorkerCost] = []
