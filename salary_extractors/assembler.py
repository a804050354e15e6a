from __future__ import annotations

from typing import Any, Container, Dict, List, Mapping, Optional

from salary_extractors.slip_models import (
    Attendance,
    Deductions,
    Earnings,
    SalarySlip,
    TargetPeriod,
)

EARNING_ITEM_KEYS = (
    "basicSalary",
    "overtimeAllowance",
    "overtimePayOver60",
    "lateNightPay",
    "fixedOvertimeAllowance",
    "expenseReimbursement",
    "commutingAllowance",
    "stockPurchaseIncentive",
)
DEDUCTION_ITEM_KEYS = (
    "healthInsurance",
    "pensionInsurance",
    "employmentInsurance",
    "incomeTax",
    "residentTax",
)
NET_PAY_TOTAL_KEYS = ("totalPayment", "totalDeductions", "netPayment")


def _sum_present(data: Mapping[str, Any], keys) -> int:
    return sum(int(data.get(key) or 0) for key in keys)


def backfill_totals(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Fill totals that the document did not print.

    Returns a new dict; the input is left untouched. Order matters:
    payment total, then deductions total, then net pay.
    """
    filled = dict(data)
    if filled.get("totalPayment") is None and filled.get("basicSalary") is not None:
        filled["totalPayment"] = _sum_present(filled, EARNING_ITEM_KEYS)

    # health insurance stands in for "the deductions section exists"
    if filled.get("totalDeductions") is None and filled.get("healthInsurance") is not None:
        filled["totalDeductions"] = _sum_present(filled, DEDUCTION_ITEM_KEYS)

    if (
        filled.get("netPayment") is None
        and filled.get("totalPayment") is not None
        and filled.get("totalDeductions") is not None
    ):
        filled["netPayment"] = filled["totalPayment"] - filled["totalDeductions"]
    return filled


def _int(data: Mapping[str, Any], key: str) -> int:
    return int(data.get(key) or 0)


def _float(data: Mapping[str, Any], key: str) -> float:
    return float(data.get(key) or 0.0)


def _str(data: Mapping[str, Any], key: str) -> str:
    return str(data.get(key) or "")


def assemble_salary_slip(data: Mapping[str, Any]) -> SalarySlip:
    filled = backfill_totals(data)
    return SalarySlip(
        company_name=_str(filled, "companyName"),
        employee_name=_str(filled, "employeeName"),
        employee_id=_str(filled, "employeeId"),
        payment_date=_str(filled, "paymentDate"),
        target_period=TargetPeriod(
            start=_str(filled, "periodStart"),
            end=_str(filled, "periodEnd"),
        ),
        attendance=Attendance(
            overtime_hours=_float(filled, "overtimeHours"),
            overtime_hours_over_60=_float(filled, "overtimeHoursOver60"),
            late_night_hours=_float(filled, "lateNightHours"),
            paid_leave_days=_float(filled, "paidLeaveDays"),
        ),
        earnings=Earnings(
            base_salary=_int(filled, "basicSalary"),
            overtime_pay=_int(filled, "overtimeAllowance"),
            overtime_pay_over_60=_int(filled, "overtimePayOver60"),
            late_night_pay=_int(filled, "lateNightPay"),
            fixed_overtime_allowance=_int(filled, "fixedOvertimeAllowance"),
            expense_reimbursement=_int(filled, "expenseReimbursement"),
            transportation_allowance=_int(filled, "commutingAllowance"),
            stock_purchase_incentive=_int(filled, "stockPurchaseIncentive"),
            total=_int(filled, "totalPayment"),
        ),
        deductions=Deductions(
            health_insurance=_int(filled, "healthInsurance"),
            welfare_insurance=_int(filled, "pensionInsurance"),
            employment_insurance=_int(filled, "employmentInsurance"),
            income_tax=_int(filled, "incomeTax"),
            resident_tax=_int(filled, "residentTax"),
            other_deductions=_int(filled, "otherDeductions"),
            total=_int(filled, "totalDeductions"),
        ),
        net_pay=_int(filled, "netPayment"),
    )


def _net_pay_totals_known(slip: SalarySlip, present_fields: Optional[Container[str]]) -> bool:
    if present_fields is None:
        return bool(slip.earnings.total)
    return all(key in present_fields for key in NET_PAY_TOTAL_KEYS)


def validate_salary_slip(
    slip: SalarySlip, present_fields: Optional[Container[str]] = None
) -> List[str]:
    """Return warnings for values that break salary-slip invariants.

    ``present_fields`` names the extracted keys; without it a zero payment
    total is read as "not printed" and the net-pay check is skipped.
    """
    warnings: List[str] = []
    attendance = slip.attendance
    if attendance.overtime_hours_over_60 > attendance.overtime_hours:
        warnings.append(
            f"60時間超残業時間（{attendance.overtime_hours_over_60:g}h）が"
            f"残業時間（{attendance.overtime_hours:g}h）を超えています。"
        )

    earnings, deductions = slip.earnings, slip.deductions
    if _net_pay_totals_known(slip, present_fields):
        expected = earnings.total - deductions.total
        if slip.net_pay != expected:
            warnings.append(
                f"差引支給額（{slip.net_pay:,}円）が支給合計-控除合計（{expected:,}円）と一致しません。"
            )

    for group, amounts in (("earnings", earnings.to_dict()), ("deductions", deductions.to_dict())):
        for label, value in amounts.items():
            if value < 0:
                warnings.append(f"{group}.{label} が負の値です: {value}")
    if slip.net_pay < 0:
        warnings.append(f"netPay が負の値です: {slip.net_pay}")
    return warnings
