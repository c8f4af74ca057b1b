DEFAULT_MODEL = "openai:gpt-4o-mini"
DEFAULT_QC_FALLBACK_SCORE = 50
DEFAULT_MAX_RETRIES = 2
DEFAULT_BATCH_CONCURRENCY = 1
APPROVE = "approve"
REJECT = "reject"
