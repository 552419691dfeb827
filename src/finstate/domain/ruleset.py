"""Classification rule catalog.

The default catalog binds IFRS line items to the keywords, name patterns
and chart-of-accounts code prefixes that usually identify them. Patterns are
case-insensitive regular expressions matched against the account name.
Liability patterns are deliberately left open at the end so that a trailing
qualifier such as "payable" never stops them from matching.
"""

import re
from typing import Iterable, Optional

from finstate.domain.entities import ClassificationRule, Statement
from finstate.domain.errors import NotFoundError, ValidationError, rule_not_found


A = Statement.ASSETS
L = Statement.LIABILITIES
E = Statement.EQUITY
R = Statement.REVENUE
X = Statement.EXPENSES


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    # Assets
    ClassificationRule(
        id="cash-bank",
        name="Cash and Bank Accounts",
        statement=A,
        line_item="Cash and Cash Equivalents",
        keywords=(
            "cash on hand", "petty cash", "cash at bank", "bank current",
            "checking account", "savings account", "money market",
            "current account", "momo", "mobile money", "mpesa", "airtel money",
        ),
        patterns=(
            r"cash",
            r"\bbank\b(?!\s*(loan|charges|fees|interest|overdraft|borrowing|credit))",
            r"petty",
            r"money\s*market",
            r"current\s*account",
            r"checking",
            r"savings",
            r"momo",
            r"mobile\s*money",
            r"m-?pesa",
            r"(airtel|orange)\s*money",
        ),
        account_codes=("1000", "1001", "1010", "1100"),
        priority=95,
        description="Cash, bank accounts, mobile money and cash equivalents",
    ),
    ClassificationRule(
        id="trade-receivables",
        name="Trade Receivables",
        statement=A,
        line_item="Trade Receivables",
        keywords=(
            "accounts receivable", "trade receivables", "debtors",
            "customer receivables", "sales receivables",
        ),
        patterns=(
            r"receivables?",
            r"debtors?",
            r"customers?\s*(receivables?|outstanding|debtors?)",
        ),
        account_codes=("1200", "1201", "1210"),
        priority=90,
        description="Amounts owed by customers for goods and services sold",
    ),
    ClassificationRule(
        id="inventory",
        name="Inventory",
        statement=A,
        line_item="Inventory",
        keywords=(
            "inventory", "stock", "merchandise", "raw materials",
            "work in progress", "finished goods",
        ),
        patterns=(
            r"inventor(y|ies)",
            r"\bstock\b(?!\s*(capital|issued))",
            r"raw\s*materials?",
            r"work\s*in\s*progress",
            r"finished\s*goods",
            r"merchandise",
        ),
        account_codes=("1300", "1301", "1310"),
        priority=90,
        description="Goods held for sale or used in production",
    ),
    ClassificationRule(
        id="prepaid-expenses",
        name="Prepaid Expenses",
        statement=A,
        line_item="Other Current Assets",
        keywords=(
            "prepaid", "prepaid expenses", "prepaid rent", "prepaid insurance",
            "advances paid", "deposits paid",
        ),
        patterns=(r"prepaid", r"advances?\s*paid", r"deposits?\s*paid", r"prepayments?$"),
        account_codes=("1400", "1401", "1410"),
        priority=95,
        description="Expenses paid in advance for future periods",
    ),
    ClassificationRule(
        id="other-receivables",
        name="Other Receivables",
        statement=A,
        line_item="Other Current Assets",
        keywords=(
            "other receivables", "staff advances", "employee advances",
            "advance to staff", "sundry debtors", "other debtors",
        ),
        patterns=(
            r"^other\s*(receivables?|debtors?)$",
            r"^staff\s*(advances?|receivables?)$",
            r"^employee\s*advances?$",
            r"^advances?\s*(to\s*staff|receivables?)$",
            r"^sundry\s*(debtors?|receivables?)$",
        ),
        account_codes=("1250", "1251"),
        priority=85,
        description="Non-trade receivables including staff advances",
    ),
    ClassificationRule(
        id="ppe",
        name="Property, Plant and Equipment",
        statement=A,
        line_item="Property, Plant and Equipment",
        keywords=(
            "property", "plant", "equipment", "land", "building", "machinery",
            "furniture", "fixtures", "computer equipment", "office equipment",
            "motor vehicles",
        ),
        patterns=(
            r"property",
            r"\bplant\b",
            r"equipment",
            r"\bland\b",
            r"buildings?",
            r"machinery",
            r"furniture",
            r"fixtures",
            r"motor\s*vehicles?",
            r"^vehicles?$",
            r"computers?",
        ),
        account_codes=("1500", "1501", "1510", "1520"),
        priority=85,
        description="Tangible fixed assets used in operations",
    ),
    ClassificationRule(
        id="accumulated-depreciation",
        name="Accumulated Depreciation",
        statement=A,
        line_item="Property, Plant and Equipment",
        keywords=("accumulated depreciation", "depreciation provision"),
        patterns=(
            r"^accumulated\s*depreciation",
            r"^depreciation\s*provision$",
            r"^provision\s*(for\s*)?depreciation$",
        ),
        account_codes=("1590", "1591"),
        priority=95,
        description="Accumulated depreciation on fixed assets (contra-asset)",
    ),
    ClassificationRule(
        id="investments",
        name="Investments",
        statement=A,
        line_item="Other Non-Current Assets",
        keywords=("investments", "bonds", "securities", "long term investments"),
        patterns=(
            r"^investments?$",
            r"^(bonds?|securities?)$",
            r"^long\s*term\s*investments?$",
            r"^financial\s*assets?$",
            r"^investment\s*in\s*(shares?|bonds?|subsidiar(y|ies)|associates?)$",
        ),
        account_codes=("1600", "1601", "1610"),
        priority=88,
        description="Long-term investments and securities",
    ),
    ClassificationRule(
        id="intangible-assets",
        name="Intangible Assets",
        statement=A,
        line_item="Intangible Assets",
        keywords=("goodwill", "intangible assets", "patents", "trademarks", "software", "licenses"),
        patterns=(
            r"^(goodwill|patents?|trademarks?|copyrights?)$",
            r"^intangible\s*assets?$",
            r"^software(\s*licen[cs]es?)?$",
            r"^licen[cs]es?$",
            r"^intellectual\s*property$",
        ),
        account_codes=("1700", "1701", "1710"),
        priority=90,
        description="Goodwill and other intangible assets",
    ),
    # Liabilities
    ClassificationRule(
        id="trade-payables",
        name="Trade Payables",
        statement=L,
        line_item="Trade Payables",
        keywords=(
            "accounts payable", "trade payables", "creditors",
            "supplier payables", "vendors payable",
        ),
        patterns=(r"payables?", r"creditors?", r"suppliers?", r"vendors?"),
        account_codes=("2100", "2101", "2110"),
        priority=90,
        description="Amounts owed to suppliers for goods and services purchased",
    ),
    ClassificationRule(
        id="accrued-liabilities",
        name="Accrued Liabilities",
        statement=L,
        line_item="Other Current Liabilities",
        keywords=(
            "accrued", "accrued expenses", "accrued liabilities", "accruals",
            "expenses payable", "accrued salaries", "accrued interest",
        ),
        patterns=(r"^accrued\b", r"^accruals?\b", r"^expenses?\s*payable"),
        account_codes=("2130", "2131"),
        priority=95,
        description="Expenses incurred but not yet paid",
    ),
    ClassificationRule(
        id="customer-deposits",
        name="Customer Deposits and Advances",
        statement=L,
        line_item="Other Current Liabilities",
        keywords=(
            "customer deposits", "customer advances", "deposits received",
            "advances from customers", "unearned revenue", "deferred revenue",
        ),
        patterns=(
            r"^customer\s*(deposits?|advances?)",
            r"^deposits?\s*received",
            r"^advances?\s*(from\s*customers?|received)",
            r"^(unearned|deferred)\s*revenue",
            r"^prepayments?\s*from\s*customers?",
        ),
        account_codes=("2140", "2141"),
        priority=95,
        description="Payments received from customers for future goods or services",
    ),
    ClassificationRule(
        id="vat-liabilities",
        name="VAT and Tax Liabilities",
        statement=L,
        line_item="Other Current Liabilities",
        keywords=(
            "vat", "value added tax", "sales tax", "input vat", "output vat",
            "vat payable", "tax payable",
        ),
        patterns=(
            r"^vat\b",
            r"^value\s*added\s*tax",
            r"^sales\s*tax",
            r"^(input|output)\s*vat",
            r"^(income\s*)?tax\s*payable",
        ),
        account_codes=("2150", "2151"),
        priority=95,
        description="VAT and other tax liabilities",
    ),
    ClassificationRule(
        id="payroll-liabilities",
        name="Payroll Liabilities",
        statement=L,
        line_item="Other Current Liabilities",
        keywords=(
            "payroll payable", "salaries payable", "wages payable", "paye",
            "nssf", "nhif", "employee deductions", "staff payable",
        ),
        patterns=(
            r"^(payroll|salar(y|ies)|wages?)\s*payable",
            r"^paye\b",
            r"^(nssf|nhif)\b",
            r"^employee\s*(deductions?|payables?)",
            r"^staff\s*payables?",
        ),
        account_codes=("2120", "2121", "2125"),
        priority=95,
        description="Payroll and employee-related liabilities",
    ),
    ClassificationRule(
        id="bank-loans",
        name="Bank Loans and Borrowings",
        statement=L,
        line_item="Other Non-Current Liabilities",
        keywords=(
            "bank loan", "bank borrowing", "loan payable", "borrowings",
            "credit facility", "overdraft",
        ),
        patterns=(
            r"^bank\s*(loan|borrowing|overdraft|credit\s*facility)",
            r"\b\w+\s*bank\s*(loan|borrowing|credit)",
            r"^loans?\s*payable",
            r"^(term\s*)?loans?\b",
            r"^borrowings?",
            r"^credit\s*(facility|line)",
            r"overdraft",
        ),
        account_codes=("2500", "2501", "2510"),
        priority=95,
        description="Bank loans, borrowings and credit facilities",
    ),
    # Equity
    ClassificationRule(
        id="share-capital",
        name="Share Capital",
        statement=E,
        line_item="Share Capital",
        keywords=("share capital", "common stock", "ordinary shares", "capital stock", "issued capital"),
        patterns=(
            r"^share\s*capital$",
            r"^(common|ordinary)\s*(stock|shares?)$",
            r"^capital\s*stock$",
            r"^(issued|paid[-\s]*up)\s*capital$",
            r"^owner'?s?\s*capital$",
        ),
        account_codes=("3000", "3001"),
        priority=90,
        description="Issued share capital and common stock",
    ),
    ClassificationRule(
        id="retained-earnings",
        name="Retained Earnings",
        statement=E,
        line_item="Retained Earnings",
        keywords=(
            "retained earnings", "accumulated profits", "undistributed profits",
            "profit brought forward",
        ),
        patterns=(
            r"^retained\s*earnings?$",
            r"^accumulated\s*(profits?|earnings?|losses?)$",
            r"^undistributed\s*profits?$",
            r"^profits?\s*brought\s*forward$",
        ),
        account_codes=("3500", "3501"),
        priority=90,
        description="Accumulated retained earnings and profits",
    ),
    ClassificationRule(
        id="reserves",
        name="Other Reserves",
        statement=E,
        line_item="Other Reserves",
        keywords=("revaluation reserve", "general reserve", "capital reserve", "share premium"),
        patterns=(r"reserves?$", r"^share\s*premium$"),
        account_codes=("3200", "3201"),
        priority=85,
        description="Revaluation, capital and other equity reserves",
    ),
    # Revenue
    ClassificationRule(
        id="sales-revenue",
        name="Sales Revenue",
        statement=R,
        line_item="Revenue from Sales",
        keywords=("sales", "revenue", "income from sales", "sales income", "turnover", "gross sales"),
        patterns=(r"sales", r"revenue", r"turnover", r"income"),
        account_codes=("4000", "4001", "4010"),
        priority=90,
        description="Revenue from sale of goods and services",
    ),
    ClassificationRule(
        id="service-revenue",
        name="Service Revenue",
        statement=R,
        line_item="Revenue from Services",
        keywords=(
            "service revenue", "consulting revenue", "professional fees income",
            "service income", "fees earned",
        ),
        patterns=(
            r"^service\s*(revenue|income)$",
            r"^consulting\s*(revenue|income|fees)$",
            r"^professional\s*fees\s*(income|earned)$",
            r"^fees\s*earned$",
            r"^revenue\s*from\s*services?$",
        ),
        account_codes=("4100", "4101"),
        priority=90,
        description="Revenue from professional and consulting services",
    ),
    ClassificationRule(
        id="interest-income",
        name="Interest Income",
        statement=R,
        line_item="Interest Income",
        keywords=("interest income", "interest earned", "interest received", "investment income"),
        patterns=(
            r"^interest\s*(income|earned|revenue|received)$",
            r"^bank\s*interest\s*(income|earned|received)$",
            r"^investment\s*(income|interest)$",
            r"^interest\s*on\s*(deposits?|investments?)$",
        ),
        account_codes=("4200", "4201"),
        priority=95,
        description="Interest earned on deposits and investments",
    ),
    ClassificationRule(
        id="other-income",
        name="Other Income",
        statement=R,
        line_item="Other Income",
        keywords=(
            "other income", "miscellaneous income", "dividend income",
            "rental income", "non-operating income", "other revenue",
        ),
        patterns=(
            r"^other\s*(income|revenue)$",
            r"^miscellaneous\s*income$",
            r"^(dividend|rental)\s*income$",
            r"^non[-\s]*operating\s*income$",
            r"^sundry\s*income$",
            r"(forex|exchange)\s*gains?",
            r"gain\s*on\s*disposal",
        ),
        account_codes=("4500", "4501", "4510"),
        priority=85,
        description="Non-operating and other miscellaneous income",
    ),
    # Expenses
    ClassificationRule(
        id="cost-of-sales",
        name="Cost of Sales",
        statement=X,
        line_item="Cost of Sales",
        keywords=("cost of sales", "cost of goods sold", "cogs", "direct costs", "cost of revenue"),
        patterns=(
            r"^cost\s*of\s*(sales?|goods?\s*sold|revenue)$",
            r"^cogs$",
            r"^direct\s*costs?$",
            r"cost\s*of\s*sales",
            r"^purchases$",
        ),
        account_codes=("5000", "5001", "5010"),
        priority=95,
        description="Direct costs of goods sold or services provided",
    ),
    ClassificationRule(
        id="salaries-benefits",
        name="Salaries and Employee Benefits",
        statement=X,
        line_item="Employee Benefits",
        keywords=(
            "salaries", "wages", "employee benefits", "staff costs",
            "payroll expenses", "staff salaries",
        ),
        patterns=(
            r"^(salar(y|ies)|wages?|staff\s*costs?)$",
            r"^(salaries\s*and\s*wages|wages\s*and\s*salaries)$",
            r"^employee\s*(benefits?|costs?)$",
            r"^payroll\s*(expenses?|costs?)$",
            r"^staff\s*salaries?$",
            r"^(paye|nssf|nhif)\s*expenses?$",
        ),
        account_codes=("5050", "5051", "5055"),
        priority=95,
        description="Employee salaries, wages and benefits",
    ),
    ClassificationRule(
        id="selling-expenses",
        name="Selling Expenses",
        statement=X,
        line_item="Selling Expenses",
        keywords=(
            "selling expenses", "sales expenses", "marketing expenses",
            "advertising", "sales commission", "distribution costs",
        ),
        patterns=(
            r"^selling\s*(expenses?|costs?)$",
            r"^sales\s*(expenses?|costs?)$",
            r"^marketing(\s*(expenses?|costs?))?$",
            r"^advertising(\s*(expenses?|costs?))?$",
            r"^sales\s*commissions?$",
            r"^distribution\s*(costs?|expenses?)$",
            r"selling",
        ),
        account_codes=("5100", "5101", "5110"),
        priority=95,
        description="Expenses related to selling and marketing",
    ),
    ClassificationRule(
        id="professional-fees",
        name="Professional Fees",
        statement=X,
        line_item="Administrative Expenses",
        keywords=(
            "professional fees", "legal fees", "audit fees", "consulting fees",
            "accounting fees", "advisory fees",
        ),
        patterns=(
            r"^professional\s*fees?$",
            r"^(legal|audit|consulting|accounting|advisory)\s*fees?$",
            r"^consultant\s*(expenses?|fees?)$",
        ),
        account_codes=("5150", "5151"),
        priority=95,
        description="Legal, audit, consulting and other professional fees",
    ),
    ClassificationRule(
        id="utilities",
        name="Utilities",
        statement=X,
        line_item="Administrative Expenses",
        keywords=("utilities", "electricity", "water", "telephone", "internet", "phone expenses"),
        patterns=(
            r"^utilities$",
            r"^(electricity|water|gas|power)(\s*(expenses?|bills?))?$",
            r"^(telephone|phone|internet)(\s*(expenses?|bills?))?$",
            r"^utility\s*(expenses?|bills?)$",
            r"^communication\s*(expenses?|costs?)$",
        ),
        account_codes=("5180", "5181", "5185"),
        priority=95,
        description="Electricity, water, telephone and internet",
    ),
    ClassificationRule(
        id="rent-expenses",
        name="Rent Expenses",
        statement=X,
        line_item="Administrative Expenses",
        keywords=("rent expenses", "office rent", "premises rent", "rental expenses"),
        patterns=(
            r"^rent(\s*(expenses?|costs?))?$",
            r"^(office|premises)\s*rent$",
            r"^rental\s*(expenses?|costs?)$",
        ),
        account_codes=("5170", "5171"),
        priority=95,
        description="Office and premises rental",
    ),
    ClassificationRule(
        id="insurance-expenses",
        name="Insurance Expenses",
        statement=X,
        line_item="Administrative Expenses",
        keywords=("insurance", "insurance expenses", "insurance premiums", "motor insurance"),
        patterns=(
            r"^insurance(\s*(expenses?|premiums?|costs?))?$",
            r"^(general|motor|professional\s*indemnity|public\s*liability)\s*insurance$",
        ),
        account_codes=("5175", "5176"),
        priority=95,
        description="Insurance premiums",
    ),
    ClassificationRule(
        id="admin-expenses",
        name="Administrative Expenses",
        statement=X,
        line_item="Administrative Expenses",
        keywords=(
            "administrative expenses", "admin expenses", "office expenses",
            "general expenses", "bank charges", "momo charges", "bank fees",
            "transaction fees",
        ),
        patterns=(
            r"^(administrative|admin|general|office)\s*(expenses?|costs?)$",
            r"^bank\s*(charges?|fees?)$",
            r"^momo\s*(charges?|fees?)$",
            r"^transaction\s*(fees?|charges?)$",
            r"^service\s*(charges?|fees?)$",
        ),
        account_codes=("5200", "5201", "5210"),
        priority=90,
        description="General administrative and office expenses, including bank charges",
    ),
    ClassificationRule(
        id="stationery-supplies",
        name="Stationery and Office Supplies",
        statement=X,
        line_item="Administrative Expenses",
        keywords=("stationery", "office supplies", "printing", "postage"),
        patterns=(
            r"^stationery(\s*(expenses?|costs?))?$",
            r"^office\s*supplies?$",
            r"^printing(\s*(and\s*stationery|expenses?|costs?))?$",
            r"^postage(\s*(expenses?|costs?))?$",
        ),
        account_codes=("5220", "5221"),
        priority=95,
        description="Stationery, office supplies, printing and postage",
    ),
    ClassificationRule(
        id="travel-entertainment",
        name="Travel and Entertainment",
        statement=X,
        line_item="Other Operating Expenses",
        keywords=("travel", "travel expenses", "entertainment", "accommodation", "hotel expenses"),
        patterns=(
            r"^travel(l?ing)?(\s*(expenses?|costs?))?$",
            r"^entertainment(\s*(expenses?|costs?))?$",
            r"^(meals?|accommodation|hotel)\s*(expenses?|costs?)$",
            r"^travel\s*and\s*entertainment$",
            r"^business\s*(travel|meals?)$",
        ),
        account_codes=("5250", "5251"),
        priority=95,
        description="Business travel, accommodation, meals and entertainment",
    ),
    ClassificationRule(
        id="training-development",
        name="Training and Development",
        statement=X,
        line_item="Other Operating Expenses",
        keywords=("training", "staff development", "employee training", "seminars", "workshops"),
        patterns=(
            r"^training(\s*(expenses?|costs?))?$",
            r"^(staff|professional)\s*development$",
            r"^employee\s*training$",
            r"^(courses?|seminars?|workshops?)(\s*(expenses?|fees?))?$",
        ),
        account_codes=("5260", "5261"),
        priority=95,
        description="Employee training and professional development",
    ),
    ClassificationRule(
        id="bad-debts",
        name="Bad Debts",
        statement=X,
        line_item="Other Operating Expenses",
        keywords=("bad debts", "doubtful debts", "provision for bad debts", "debt write off"),
        patterns=(
            r"^bad\s*debts?",
            r"^doubtful\s*debts?",
            r"^provision\s*for\s*(bad|doubtful)\s*debts?",
            r"^debt\s*write[-\s]*off",
            r"^uncollectible\s*(accounts?|debts?)",
        ),
        account_codes=("5280", "5281"),
        priority=95,
        description="Bad debts written off and doubtful debt provisions",
    ),
    ClassificationRule(
        id="interest-expenses",
        name="Interest Expenses",
        statement=X,
        line_item="Interest Expenses",
        keywords=("interest expense", "interest paid", "loan interest", "borrowing costs", "finance costs"),
        patterns=(
            r"^interest\s*(expenses?|paid|costs?)$",
            r"^loan\s*interest$",
            r"^bank\s*interest\s*(expenses?|paid)$",
            r"^borrowing\s*(costs?|interest)$",
            r"^interest\s*on\s*(loans?|borrowings?|overdrafts?)$",
            r"^finance\s*(costs?|charges?)$",
        ),
        account_codes=("5290", "5291"),
        priority=95,
        description="Interest paid on loans and borrowings",
    ),
    ClassificationRule(
        id="vehicle-expenses",
        name="Vehicle and Transport Expenses",
        statement=X,
        line_item="Other Operating Expenses",
        keywords=(
            "vehicle expenses", "vehicle running expenses", "transport expenses",
            "fuel expenses", "vehicle maintenance", "vehicle repairs",
        ),
        patterns=(
            r"^(motor\s*)?vehicle\s*(expenses?|running\s*expenses?|costs?)$",
            r"^transport(ation)?\s*(expenses?|costs?)$",
            r"^fuel(\s*(expenses?|costs?))?$",
            r"^vehicle\s*(maintenance|repairs?)$",
            r"vehicle.*expense",
        ),
        account_codes=("5300", "5301"),
        priority=95,
        description="Vehicle running costs and transportation",
    ),
    ClassificationRule(
        id="repairs-maintenance",
        name="Repairs and Maintenance",
        statement=X,
        line_item="Other Operating Expenses",
        keywords=("repairs and maintenance", "maintenance expenses", "repair expenses", "repairs", "maintenance"),
        patterns=(
            r"^repairs?(\s*(and\s*maintenance|expenses?))?$",
            r"^maintenance(\s*(expenses?|costs?))?$",
            r"^repair\s*(expenses?|costs?)$",
            r"repairs?\s*(and\s*|&\s*)?maintenance",
        ),
        account_codes=("5350", "5351"),
        priority=95,
        description="Repairs and maintenance",
    ),
    ClassificationRule(
        id="depreciation-amortisation",
        name="Depreciation and Amortisation",
        statement=X,
        line_item="Depreciation and Amortisation",
        keywords=("depreciation", "amortisation", "amortization", "depreciation expense"),
        patterns=(
            r"^depreciation(\s*(expenses?|costs?|charge))?$",
            r"^amorti[sz]ation(\s*(expenses?|costs?|charge))?$",
            r"^depreciation\s*(and|&)\s*amorti[sz]ation$",
            r"depreciation",
            r"amorti[sz]ation",
        ),
        account_codes=("5400", "5401"),
        priority=95,
        description="Depreciation and amortisation of tangible and intangible assets",
    ),
    ClassificationRule(
        id="income-tax-expenses",
        name="Income Tax Expenses",
        statement=X,
        line_item="Income Tax Expenses",
        keywords=("income tax expense", "current income tax", "deferred tax expense", "tax expense", "corporate tax"),
        patterns=(
            r"^(income\s*)?tax\s*expenses?$",
            r"^current\s*income\s*tax$",
            r"^deferred\s*tax\s*expenses?$",
            r"^corporat(e|ion)\s*tax$",
            r"income\s*tax",
        ),
        account_codes=("5500", "5501"),
        priority=95,
        description="Current and deferred income tax",
    ),
    ClassificationRule(
        id="other-expenses",
        name="Other Expenses",
        statement=X,
        line_item="Other Expenses",
        keywords=(
            "other expenses", "miscellaneous expenses", "sundry expenses",
            "non-operating expenses", "other costs",
        ),
        patterns=(
            r"^other\s*(expenses?|costs?)$",
            r"^miscellaneous\s*(expenses?|costs?)$",
            r"^sundry\s*(expenses?|costs?)$",
            r"^non[-\s]*operating\s*(expenses?|costs?)$",
            r"^exceptional\s*(expenses?|costs?|items?)$",
            r"(forex|exchange)\s*loss(es)?",
        ),
        account_codes=("5900", "5901"),
        priority=80,
        description="Non-operating and miscellaneous expenses",
    ),
)


def validate_rule(rule: ClassificationRule) -> None:
    """Validate a classification rule before it is used.

    Raises:
        ValidationError: If the rule has no identity, no line item, no
            matching signal or an invalid regular expression
    """
    if not rule.id or not rule.id.strip():
        raise ValidationError("Classification rule ID cannot be empty")
    if not rule.line_item or not rule.line_item.strip():
        raise ValidationError(f"Classification rule '{rule.id}' has no line item")
    if not isinstance(rule.statement, Statement):
        raise ValidationError(f"Classification rule '{rule.id}' has an invalid statement")
    if not (rule.keywords or rule.patterns or rule.account_codes):
        raise ValidationError(
            f"Classification rule '{rule.id}' needs at least one keyword, pattern or account code"
        )
    for pattern in rule.patterns:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValidationError(f"Invalid pattern '{pattern}' in rule '{rule.id}': {e}")


class RuleSet:
    """Ordered, mutable collection of classification rules."""

    def __init__(self, rules: Optional[Iterable[ClassificationRule]] = None):
        """Initialize the rule set.

        Args:
            rules: Initial rules. Defaults to the built-in catalog.
        """
        self._rules: dict[str, ClassificationRule] = {}
        for rule in DEFAULT_RULES if rules is None else rules:
            self._rules[rule.id] = rule

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules.values())

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def get(self, rule_id: str) -> Optional[ClassificationRule]:
        return self._rules.get(rule_id)

    def add(self, rule: ClassificationRule) -> None:
        """Add a rule, replacing any existing rule with the same ID.

        Raises:
            ValidationError: If the rule is malformed
        """
        validate_rule(rule)
        self._rules.pop(rule.id, None)
        self._rules[rule.id] = rule

    def remove(self, rule_id: str) -> None:
        """Remove a rule by ID.

        Raises:
            NotFoundError: If no rule has that ID
        """
        if rule_id not in self._rules:
            raise NotFoundError(rule_not_found(rule_id))
        del self._rules[rule_id]

    def all(self) -> list[ClassificationRule]:
        return list(self._rules.values())

    def by_statement(self, statement: Statement) -> list[ClassificationRule]:
        return [r for r in self._rules.values() if r.statement == statement]

    def search(self, query: str) -> list[ClassificationRule]:
        """Find rules whose name, line item or keywords contain the query."""
        needle = query.strip().lower()
        if not needle:
            return self.all()
        return [
            r
            for r in self._rules.values()
            if needle in r.name.lower()
            or needle in r.line_item.lower()
            or any(needle in k.lower() for k in r.keywords)
        ]

    def sorted_by_priority(self) -> list[ClassificationRule]:
        """Rules in descending priority; ties keep insertion order."""
        return sorted(self._rules.values(), key=lambda r: -r.priority)
