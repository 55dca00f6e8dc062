"""工資/預支相關業務錯誤。每個引擎函式只會成功回傳或拋出下列其中一種，不會自動修正數值。"""


class LaborError(ValueError):
    """業務規則錯誤基底；code 供 API 回傳給前端判斷顯示訊息"""
    code = "labor_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


class InvalidAmount(LaborError):
    """金額缺漏、非有限數、為零或負數"""
    code = "invalid_amount"


class InvalidPeriod(InvalidAmount):
    """結算起日晚於訖日"""
    code = "invalid_period"


class InvalidFraction(LaborError):
    """出勤狀態無正的日比例（缺勤或未設定），無法換算日薪"""
    code = "invalid_fraction"


class ExceedsAdvanceBalance(LaborError):
    """扣款超過目前預支餘額"""
    code = "exceeds_advance_balance"


class DeductionExceedsGross(LaborError):
    """扣款超過本次結算應發金額"""
    code = "deduction_exceeds_gross"


class UnknownWorker(LaborError):
    """工人不存在"""
    code = "unknown_worker"


class UnknownFarm(LaborError):
    """農場不存在"""
    code = "unknown_farm"


class UnknownAttendance(LaborError):
    """出勤紀錄不存在"""
    code = "unknown_attendance"


class DuplicateAttendance(LaborError):
    """同一工人同一天已有出勤紀錄"""
    code = "duplicate_attendance"


class OptimisticConflict(LaborError):
    """預支餘額已被其他操作更新（版本不符）"""
    code = "optimistic_conflict"


NOT_FOUND_ERRORS = (UnknownWorker, UnknownFarm, UnknownAttendance)


def http_status_for(exc: LaborError) -> int:
    """檢核錯誤 400、查無資料 404、版本衝突/重複出勤 409"""
    if isinstance(exc, NOT_FOUND_ERRORS):
        return 404
    if isinstance(exc, (OptimisticConflict, DuplicateAttendance)):
        return 409
    return 400
