"""Paths and table names of the Supabase backend."""

REST_PATH = "/rest/v1"
FUNCTIONS_PATH = "/functions/v1"

CHECK_INS_TABLE = "check_ins"
INCIDENTS_TABLE = "incidents"
USERS_TABLE = "users"
LOCATION_UPDATES_TABLE = "location_updates"

LATEST_CHECK_INS_RPC = "get_latest_checkins"
VERIFY_CODE_RPC = "verify_code_simple"

EMERGENCY_ESCALATION_FUNCTION = "emergency-escalation"
SEND_WORKER_OTP_FUNCTION = "send-worker-otp"
VALIDATE_WORKER_PIN_FUNCTION = "validate-worker-pin"

# Inserts keyed by a client-supplied id become no-ops when the row already exists.
IGNORE_DUPLICATES_PREFER = "resolution=ignore-duplicates,return=representation"
RETURN_REPRESENTATION_PREFER = "return=representation"

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
