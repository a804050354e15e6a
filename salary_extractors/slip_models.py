from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class TargetPeriod:
    start: str = ""
    end: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Attendance:
    overtime_hours: float = 0.0
    overtime_hours_over_60: float = 0.0
    late_night_hours: float = 0.0
    paid_leave_days: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "overtimeHours": self.overtime_hours,
            "overtimeHoursOver60": self.overtime_hours_over_60,
            "lateNightHours": self.late_night_hours,
            "paidLeaveDays": self.paid_leave_days,
        }


@dataclass(frozen=True)
class Earnings:
    base_salary: int = 0
    overtime_pay: int = 0
    overtime_pay_over_60: int = 0
    late_night_pay: int = 0
    fixed_overtime_allowance: int = 0
    expense_reimbursement: int = 0
    transportation_allowance: int = 0
    stock_purchase_incentive: int = 0
    total: int = 0

    def items(self) -> Dict[str, int]:
        return {
            "baseSalary": self.base_salary,
            "overtimePay": self.overtime_pay,
            "overtimePayOver60": self.overtime_pay_over_60,
            "lateNightPay": self.late_night_pay,
            "fixedOvertimeAllowance": self.fixed_overtime_allowance,
            "expenseReimbursement": self.expense_reimbursement,
            "transportationAllowance": self.transportation_allowance,
            "stockPurchaseIncentive": self.stock_purchase_incentive,
        }

    def to_dict(self) -> Dict[str, int]:
        return {**self.items(), "total": self.total}


@dataclass(frozen=True)
class Deductions:
    health_insurance: int = 0
    welfare_insurance: int = 0
    employment_insurance: int = 0
    income_tax: int = 0
    resident_tax: int = 0
    other_deductions: int = 0
    total: int = 0

    def items(self) -> Dict[str, int]:
        return {
            "healthInsurance": self.health_insurance,
            "welfareInsurance": self.welfare_insurance,
            "employmentInsurance": self.employment_insurance,
            "incomeTax": self.income_tax,
            "residentTax": self.resident_tax,
            "otherDeductions": self.other_deductions,
        }

    def to_dict(self) -> Dict[str, int]:
        return {**self.items(), "total": self.total}


@dataclass(frozen=True)
class SalarySlip:
    company_name: str = ""
    employee_name: str = ""
    employee_id: str = ""
    payment_date: str = ""
    target_period: TargetPeriod = field(default_factory=TargetPeriod)
    attendance: Attendance = field(default_factory=Attendance)
    earnings: Earnings = field(default_factory=Earnings)
    deductions: Deductions = field(default_factory=Deductions)
    net_pay: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "companyName": self.company_name,
            "employeeName": self.employee_name,
            "employeeId": self.employee_id,
            "paymentDate": self.payment_date,
            "targetPeriod": self.target_period.to_dict(),
            "attendance": self.attendance.to_dict(),
            "earnings": self.earnings.to_dict(),
            "deductions": self.deductions.to_dict(),
            "netPay": self.net_pay,
        }
