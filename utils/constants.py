APP_NAME = "Billfold"
APP_WIDTH = 1200
APP_HEIGHT = 750
DB_FILE = "billfold.db"
DATE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"

BILLING_PERIODS = ["weekly", "bi_weekly", "monthly", "semi_annually"]
BILLING_PERIOD_LABELS = {
    "weekly": "Weekly",
    "bi_weekly": "Every 2 weeks",
    "monthly": "Monthly",
    "semi_annually": "Every 6 months",
}
WEEK_INTERVALS = {
    "weekly": 7,
    "bi_weekly": 14,
}
SEMI_ANNUAL_MONTHS = 6

TEMPLATE_KINDS = ("bill", "income")

# 0=Sunday..6=Saturday, matching recurrence_day on templates
DAYS_OF_WEEK = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
LAST_WEEK_OF_MONTH = 5

PAYMENT_SOURCE_TYPES = (
    "bank_account", "credit_card", "line_of_credit", "cash", "savings", "investment",
)
SAVINGS_SOURCE_TYPES = ("savings", "investment")

GOAL_MAX_SIMULATED_PAYMENTS = 36

DUE_SOON_DAYS = 7

# Card payoff bills fall due on this day of the month
PAYOFF_DUE_DAY = 28

ADHOC_REMAINDER_NOTE = "Remainder from split payment"
SCHEDULE_ENDED_NOTE = "Schedule ended - automatically closed"

SEVERITY_COLORS = {
    "error":   "#F44336",
    "warning": "#FF9800",
    "info":    "#2196F3",
}

TEMPERATURE_COLORS = {
    "ahead":    "#4CAF50",
    "on_track": "#FF9800",
    "behind":   "#F44336",
}
