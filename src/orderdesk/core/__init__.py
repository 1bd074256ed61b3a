# Core logic not tied to the HTTP layer:
# - credential vault (encryption of order secrets at rest)
# - best-effort notifier and its SMTP transport
# - object storage facade and upload policy
