# Funding Module
# Balance rules for client buckets and contract boxes
#
# Components:
# - characteristics.py: Typed characteristic variants and presets
# - rules.py: Pure posting arithmetic and utilization
# - thresholds.py: Alert evaluation after each entry
# - ledger.py: FundingLedger, the only writer of balances
# - aggregator.py: Agreement/contract totals, computed on read
# - lifecycle.py: Guarded status transitions
# - provisioning.py: Client buckets from templates
# - errors.py: Domain error taxonomy
