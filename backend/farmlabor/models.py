"""資料庫模型 - 工人出勤與薪資結算。
advance_balance 只能經由預支/扣款/結算異動；每次異動 version + 1，供樂觀鎖比對。
結算單與交易紀錄僅新增不修改（帳本）。"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import String, Date, Text, Numeric, ForeignKey, DateTime, Boolean, Integer, UniqueConstraint, CheckConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from farmlabor.database import Base


class Farm(Base):
    """農場（僅供出勤/交易引用檢核；農場其他資料由農場模組管理）"""
    __tablename__ = "farms"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), comment="農場名稱")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class WorkType(Base):
    """工作類別：預設（剪枝/採收/噴藥…）與使用者自訂"""
    __tablename__ = "work_types"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, comment="小寫名稱")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Worker(Base):
    """長期工人。日薪為目前標準日薪；未覆寫之出勤一律以此計算。"""
    __tablename__ = "workers"
    __table_args__ = (
        CheckConstraint("daily_rate > 0", name="ck_workers_daily_rate_positive"),
        CheckConstraint("advance_balance >= 0", name="ck_workers_advance_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), index=True, comment="姓名")
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), comment="標準日薪")
    advance_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), comment="預支未還餘額")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True, comment="false=已停用（軟刪除）")
    version: Mapped[int] = mapped_column(Integer, default=1, comment="餘額版本（樂觀鎖）")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    attendance: Mapped[List["WorkerAttendance"]] = relationship("WorkerAttendance", back_populates="worker", cascade="all, delete-orphan")
    transactions: Mapped[List["WorkerTransaction"]] = relationship("WorkerTransaction", back_populates="worker", cascade="all, delete-orphan")
    settlements: Mapped[List["WorkerSettlement"]] = relationship("WorkerSettlement", back_populates="worker", cascade="all, delete-orphan")


class WorkerAttendance(Base):
    """出勤：一人一日一筆，可同時歸屬多個農場（farm_ids）。"""
    __tablename__ = "worker_attendance"
    __table_args__ = (
        UniqueConstraint("worker_id", "date", name="uq_worker_attendance_day"),
        CheckConstraint("work_status IN ('full_day', 'half_day', 'absent')", name="ck_worker_attendance_status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    worker_id: Mapped[int] = mapped_column(ForeignKey("workers.id", ondelete="CASCADE"), index=True)
    farm_ids: Mapped[list] = mapped_column(JSON, default=list, comment="工作農場 id 陣列")
    date: Mapped[date] = mapped_column(Date, index=True)
    work_status: Mapped[str] = mapped_column(String(20), comment="full_day / half_day / absent")
    work_type: Mapped[str] = mapped_column(String(100), default="general")
    daily_rate_override: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), comment="覆寫日薪；NULL 表示用工人目前日薪")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    worker: Mapped["Worker"] = relationship("Worker", back_populates="attendance")


class WorkerSettlement(Base):
    """結算單：確認後不可修改。farm_id 為空表示跨農場結算。"""
    __tablename__ = "worker_settlements"
    __table_args__ = (
        CheckConstraint("period_start <= period_end", name="ck_settlement_period"),
        CheckConstraint("status IN ('draft', 'confirmed')", name="ck_settlement_status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    worker_id: Mapped[int] = mapped_column(ForeignKey("workers.id", ondelete="CASCADE"), index=True)
    farm_id: Mapped[Optional[int]] = mapped_column(ForeignKey("farms.id", ondelete="SET NULL"), nullable=True)
    period_start: Mapped[date] = mapped_column(Date, index=True)
    period_end: Mapped[date] = mapped_column(Date, index=True)
    days_worked: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), comment="確認之總工資（可與試算不同）")
    advance_deducted: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    net_payment: Mapped[Decimal] = mapped_column(Numeric(10, 2), comment="實發 = 總工資 - 扣款")
    status: Mapped[str] = mapped_column(String(20), default="confirmed", index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    worker: Mapped["Worker"] = relationship("Worker", back_populates="settlements")


class WorkerTransaction(Base):
    """預支/扣款/發薪交易帳：僅新增。每筆最多一個農場。"""
    __tablename__ = "worker_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_worker_transactions_amount_positive"),
        CheckConstraint("type IN ('advance_given', 'advance_deducted', 'payment')", name="ck_worker_transactions_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    worker_id: Mapped[int] = mapped_column(ForeignKey("workers.id", ondelete="CASCADE"), index=True)
    farm_id: Mapped[Optional[int]] = mapped_column(ForeignKey("farms.id", ondelete="SET NULL"), nullable=True, index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    type: Mapped[str] = mapped_column(String(30), index=True, comment="advance_given / advance_deducted / payment")
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    settlement_id: Mapped[Optional[int]] = mapped_column(ForeignKey("worker_settlements.id", ondelete="SET NULL"), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    worker: Mapped["Worker"] = relationship("Worker", back_populates="transactions")


class TemporaryWorkerEntry(Base):
    """臨時工：無工人主檔、不適用預支。工時僅供參考，金額由操作者直接輸入。"""
    __tablename__ = "temporary_worker_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    farm_id: Mapped[int] = mapped_column(ForeignKey("farms.id", ondelete="CASCADE"), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    name: Mapped[str] = mapped_column(String(255))
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
