from salary_extractors.assembler import (
    assemble_salary_slip,
    backfill_totals,
    validate_salary_slip,
)
from salary_extractors.salary_fields import extract_fields
from salary_extractors.slip_models import Attendance, Earnings, Deductions, SalarySlip

from tests.test_salary_fields import DETAILED_SLIP_TEXT


DEDUCTION_ITEMS = {
    "healthInsurance": 20900,
    "pensionInsurance": 40260,
    "employmentInsurance": 3120,
    "incomeTax": 28910,
    "residentTax": 17600,
}


def test_backfill_deductions_then_net_pay():
    filled = backfill_totals(DEDUCTION_ITEMS)
    assert filled["totalDeductions"] == 110790
    assert "netPayment" not in filled

    filled = backfill_totals({**DEDUCTION_ITEMS, "totalPayment": 571967})
    assert filled["totalDeductions"] == 110790
    assert filled["netPayment"] == 461177


def test_backfill_does_not_mutate_input():
    data = dict(DEDUCTION_ITEMS)
    backfill_totals(data)
    assert data == DEDUCTION_ITEMS


def test_backfill_keeps_explicit_totals():
    data = {**DEDUCTION_ITEMS, "totalDeductions": 142290, "totalPayment": 571967, "netPayment": 1}
    filled = backfill_totals(data)
    assert filled["totalDeductions"] == 142290
    assert filled["netPayment"] == 1


def test_backfill_deductions_requires_health_insurance():
    data = {key: value for key, value in DEDUCTION_ITEMS.items() if key != "healthInsurance"}
    filled = backfill_totals({**data, "totalPayment": 500000})
    assert "totalDeductions" not in filled
    assert "netPayment" not in filled


def test_backfill_payment_total_from_earning_items():
    filled = backfill_totals(
        {"basicSalary": 300000, "overtimeAllowance": 50000, "commutingAllowance": 10000}
    )
    assert filled["totalPayment"] == 360000


def test_backfill_zero_amount_counts_as_present():
    filled = backfill_totals({"totalPayment": 300000, "totalDeductions": 0})
    assert filled["netPayment"] == 300000


def test_assemble_salary_slip_from_detailed_text():
    slip = assemble_salary_slip(extract_fields(DETAILED_SLIP_TEXT))
    assert slip.to_dict() == {
        "companyName": "イグニション・ポイント フォース株式会社",
        "employeeName": "川上　虎己",
        "employeeId": "IGPF2400008",
        "paymentDate": "2025-07-25",
        "targetPeriod": {"start": "2025-07-01", "end": "2025-07-31"},
        "attendance": {
            "overtimeHours": 15.0,
            "overtimeHoursOver60": 19.0,
            "lateNightHours": 14.0,
            "paidLeaveDays": 12.5,
        },
        "earnings": {
            "baseSalary": 326767,
            "overtimePay": 38294,
            "overtimePayOver60": 58206,
            "lateNightPay": 19402,
            "fixedOvertimeAllowance": 114900,
            "expenseReimbursement": 3278,
            "transportationAllowance": 9620,
            "stockPurchaseIncentive": 1500,
            "total": 571967,
        },
        "deductions": {
            "healthInsurance": 20900,
            "welfareInsurance": 40260,
            "employmentInsurance": 3120,
            "incomeTax": 28910,
            "residentTax": 17600,
            "otherDeductions": 31500,
            "total": 142290,
        },
        "netPay": 429677,
    }


def test_assemble_minimal_sample():
    slip = assemble_salary_slip(
        extract_fields("基本給：326,767\n固定時間外手当：114,900\n差引支給額：429,677")
    )
    assert slip.earnings.base_salary == 326767
    assert slip.earnings.fixed_overtime_allowance == 114900
    assert slip.net_pay == 429677
    assert slip.company_name == ""
    assert slip.deductions.total == 0


def test_validate_reports_over_60_overtime_exceeding_total():
    slip = assemble_salary_slip(extract_fields(DETAILED_SLIP_TEXT))
    warnings = validate_salary_slip(slip)
    assert len(warnings) == 1
    assert "60時間超" in warnings[0]


def test_validate_reports_net_pay_mismatch():
    slip = SalarySlip(
        earnings=Earnings(base_salary=300000, total=300000),
        deductions=Deductions(health_insurance=10000, total=10000),
        net_pay=250000,
    )
    warnings = validate_salary_slip(slip)
    assert any("差引支給額" in warning for warning in warnings)


def test_validate_clean_slip_has_no_warnings():
    slip = SalarySlip(
        attendance=Attendance(overtime_hours=20.0, overtime_hours_over_60=0.0),
        earnings=Earnings(base_salary=300000, total=300000),
        deductions=Deductions(health_insurance=10000, total=10000),
        net_pay=290000,
    )
    assert validate_salary_slip(slip) == []


def test_validate_reports_negative_amounts():
    slip = SalarySlip(deductions=Deductions(income_tax=-500), net_pay=-1)
    warnings = validate_salary_slip(slip)
    assert any("deductions.incomeTax" in warning for warning in warnings)
    assert any("netPay" in warning for warning in warnings)


def test_validate_checks_net_pay_when_deductions_total_is_zero():
    slip = SalarySlip(
        earnings=Earnings(base_salary=300000, total=300000),
        deductions=Deductions(total=0),
        net_pay=250000,
    )
    warnings = validate_salary_slip(slip)
    assert any("差引支給額" in warning for warning in warnings)


def test_validate_uses_present_fields_for_net_pay_check():
    data = {"totalPayment": 300000, "totalDeductions": 0, "netPayment": 250000}
    slip = assemble_salary_slip(data)
    assert any("差引支給額" in warning for warning in validate_salary_slip(slip, present_fields=data))

    partial = backfill_totals({"basicSalary": 250000})
    slip = assemble_salary_slip(partial)
    assert validate_salary_slip(slip, present_fields=partial) == []
