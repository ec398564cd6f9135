from datetime import date

from rbz_rates import RBZRates

print(RBZRates.__version__)  # 0.1.0

# Default Usage, reads RBZ_RATES_* from the environment
rbz = RBZRates()

# Insert today's bulletin (weekends fall back to the last published day)
report = rbz.seed()
print(report.succeeded, report.failures)

# Latest stored snapshot
rates = rbz.rate()
print(rates)
# => {'rate_date': date(2024, 12, 5), 'base_currency': 'ZWG', 'source': 'RBZ', 'rates': {'USD': {...}, ...}}

# Specific snapshot by date
print(rbz.rate(rate_date=date(2024, 12, 5)))

# Backfill a window, one day after another
rbz.seed_historical(from_date=date(2024, 12, 1), to_date=date(2024, 12, 10))

# Daily history for one currency
history = rbz.history(from_date=date(2024, 12, 1), to_date=date(2024, 12, 10), currency="USD")
print(history[:2])

# Extract without persisting
result = rbz.extract(date(2024, 12, 5))
if result.ok:
    print({currency: row.mid_zwg for currency, row in result.rows.items()})
else:
    print(result.error_type, result.reason)
