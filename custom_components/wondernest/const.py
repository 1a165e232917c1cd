# File: const.py
"""Constants for the WonderNest integration.

This file centralizes configuration keys, defaults, storage keys, event names,
service names and field names used across the reward and access control engine.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
WONDERNEST_TITLE = "WonderNest"

# Integration Domain
DOMAIN = "wondernest"

# Logger
LOGGER = logging.getLogger(__package__)

# Storage and Versioning
STORAGE_KEY = "wondernest_data"
STORAGE_VERSION = 1
SCHEMA_VERSION = 1

# ------------------------------------------------------------------------------------------------
# Configuration Keys
# ------------------------------------------------------------------------------------------------
CONF_REMOTE_URL = "remote_url"
CONF_API_TOKEN = "api_token"
CONF_GAMES_FILE = "games_file"
CONF_GUARDIAN_USER_IDS = "guardian_user_ids"

DEFAULT_GAMES_FILE = ""
DEFAULT_REMOTE_URL = ""

# Config flow translation keys
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_INVALID_URL = "invalid_url"
TRANS_KEY_ERROR_INVALID_GAMES_FILE = "invalid_games_file"

# ------------------------------------------------------------------------------------------------
# Storage Buckets
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_GAME_DATA = "game_data"
DATA_UNLOCKS = "unlocks"
DATA_ACCOUNTS = "accounts"
DATA_APPROVALS = "approvals"
DATA_PLAY_TIME = "play_time"
DATA_SYNC_QUEUE = "sync_queue"

# Account fields
DATA_ACCOUNT_BALANCE = "balance"
DATA_ACCOUNT_TRANSACTIONS = "transactions"
DATA_ACCOUNT_LAST_PLAY_DATE = "last_play_date"

# Transaction fields
DATA_TRANSACTION_ID = "transaction_id"
DATA_TRANSACTION_AMOUNT = "amount"
DATA_TRANSACTION_REASON = "reason"
DATA_TRANSACTION_TIMESTAMP = "timestamp"
DATA_TRANSACTION_BALANCE_AFTER = "balance_after"

# Approval fields
DATA_APPROVAL_REQUEST_ID = "request_id"
DATA_APPROVAL_GAME_ID = "game_id"
DATA_APPROVAL_CHILD_ID = "child_id"
DATA_APPROVAL_STATUS = "status"
DATA_APPROVAL_RESTRICTION = "restriction"
DATA_APPROVAL_REQUESTED_AT = "requested_at"
DATA_APPROVAL_DECIDED_AT = "decided_at"
DATA_APPROVAL_GUARDIAN_NOTE = "guardian_note"
DATA_APPROVAL_GAME_META = "game_meta"

# Time restriction fields
DATA_RESTRICTION_MAX_DAILY_MINUTES = "max_daily_minutes"
DATA_RESTRICTION_ALLOWED_START = "allowed_start_time"
DATA_RESTRICTION_ALLOWED_END = "allowed_end_time"
DATA_RESTRICTION_BLOCKED_WEEKDAYS = "blocked_weekdays"
DATA_RESTRICTION_BLOCKED_FEATURES = "blocked_features"

# Sync item fields
DATA_SYNC_ITEM_ID = "item_id"
DATA_SYNC_KIND = "kind"
DATA_SYNC_IDEMPOTENCY_KEY = "idempotency_key"
DATA_SYNC_PAYLOAD = "payload"
DATA_SYNC_ATTEMPTS = "attempts"
DATA_SYNC_NEXT_ATTEMPT_AT = "next_attempt_at"
DATA_SYNC_CREATED_AT = "created_at"
DATA_SYNC_LAST_ERROR = "last_error"

# ------------------------------------------------------------------------------------------------
# Game Data Bag Keys
# ------------------------------------------------------------------------------------------------
GAME_DATA_SCORE = "score"
GAME_DATA_LEVEL = "level"
GAME_DATA_COMPLETED = "completed"
GAME_DATA_WIN_STREAK = "win_streak"
GAME_DATA_DAILY_PLAY_STREAK = "daily_play_streak"
GAME_DATA_TOTAL_PLAY_TIME_MINUTES = "total_play_time_minutes"
GAME_DATA_SESSIONS_PLAYED = "sessions_played"
GAME_DATA_LAST_PLAYED_DATE = "last_played_date"

# Owned by the session manager; event flags may not set these
GAME_DATA_RESERVED_KEYS = frozenset(
    {
        GAME_DATA_SCORE,
        GAME_DATA_LEVEL,
        GAME_DATA_DAILY_PLAY_STREAK,
        GAME_DATA_TOTAL_PLAY_TIME_MINUTES,
        GAME_DATA_SESSIONS_PLAYED,
        GAME_DATA_LAST_PLAYED_DATE,
    }
)

DEFAULT_SCORE = 0
DEFAULT_LEVEL = 1

# ------------------------------------------------------------------------------------------------
# Event Types
# ------------------------------------------------------------------------------------------------
EVENT_TYPE_SCORE_UPDATE = "score_update"
EVENT_TYPE_LEVEL_PROGRESS = "level_progress"
EVENT_TYPE_ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
EVENT_TYPE_SESSION_COMPLETION = "session_completion"
EVENT_TYPE_APPROVAL_REQUESTED = "approval_requested"
EVENT_TYPE_APPROVAL_RESPONDED = "approval_responded"

# ------------------------------------------------------------------------------------------------
# Criterion Types
# ------------------------------------------------------------------------------------------------
CRITERION_SCORE_THRESHOLD = "score_threshold"
CRITERION_LEVEL_REACHED = "level_reached"
CRITERION_TOTAL_PLAY_TIME = "total_play_time"
CRITERION_SESSIONS_PLAYED = "sessions_played"
CRITERION_PERFECT_SCORE = "perfect_score"
CRITERION_WIN_STREAK = "win_streak"
CRITERION_DAILY_PLAY_STREAK = "daily_play_streak"
CRITERION_GAME_COMPLETION = "game_completion"
CRITERION_SCORE_IN_SINGLE_SESSION = "score_in_single_game"
CRITERION_LEVEL_IN_TIME = "level_completed_in_time"
CRITERION_MULTI_GAME_COUNT = "multiple_games_played"

# ------------------------------------------------------------------------------------------------
# Reward Rule Actions
# ------------------------------------------------------------------------------------------------
REWARD_ACTION_SCORE_INCREASE = "score_increase"
REWARD_ACTION_LEVEL_COMPLETE = "level_complete"
REWARD_ACTION_ACHIEVEMENT_UNLOCK = "achievement_unlock"
REWARD_ACTION_GAME_COMPLETE = "game_complete"
REWARD_ACTION_DAILY_PLAY = "daily_play"
REWARD_ACTION_PERFECT_SCORE = "perfect_score"

REWARD_CONDITION_MIN_INCREASE = "min_increase"
REWARD_CONDITION_MAX_SCORE = "max_score"
DEFAULT_PERFECT_SCORE = 100

# ------------------------------------------------------------------------------------------------
# Access Decision Reasons
# ------------------------------------------------------------------------------------------------
ACCESS_ALLOWED = "allowed"
ACCESS_NOT_REQUESTED = "not_requested"
ACCESS_PENDING = "pending"
ACCESS_REJECTED = "rejected"
ACCESS_DAILY_LIMIT_REACHED = "daily_limit_reached"
ACCESS_OUTSIDE_ALLOWED_TIME = "outside_allowed_time"
ACCESS_BLOCKED_WEEKDAY = "blocked_weekday"

# Reasons caused by a time restriction rather than the approval status
ACCESS_TIME_RESTRICTED_REASONS = frozenset(
    {
        ACCESS_DAILY_LIMIT_REACHED,
        ACCESS_OUTSIDE_ALLOWED_TIME,
        ACCESS_BLOCKED_WEEKDAY,
    }
)

# ------------------------------------------------------------------------------------------------
# Sync Queue
# ------------------------------------------------------------------------------------------------
SYNC_KIND_EVENT = "event"
SYNC_KIND_UNLOCK = "unlock"
SYNC_KIND_TRANSACTION = "transaction"
SYNC_KIND_GAME_DATA = "game_data"
SYNC_KIND_APPROVAL = "approval"

SYNC_KINDS = (
    SYNC_KIND_EVENT,
    SYNC_KIND_UNLOCK,
    SYNC_KIND_TRANSACTION,
    SYNC_KIND_GAME_DATA,
    SYNC_KIND_APPROVAL,
)

SYNC_BACKOFF_BASE_SECONDS = 1
SYNC_BACKOFF_CAP_SECONDS = 60
REMOTE_TIMEOUT_SECONDS = 15
REMOTE_SYNC_PATH = "/sync/{kind}"
REMOTE_HEADER_IDEMPOTENCY_KEY = "Idempotency-Key"

# HTTP status handling for the remote sink
HTTP_STATUS_CONFLICT = 409
HTTP_TRANSIENT_STATUSES = frozenset({408, 425, 429})

# ------------------------------------------------------------------------------------------------
# Home Assistant Bus Events
# ------------------------------------------------------------------------------------------------
EVENT_ACHIEVEMENT_UNLOCKED = f"{DOMAIN}_achievement_unlocked"
EVENT_CURRENCY_UPDATED = f"{DOMAIN}_currency_updated"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_REGISTER_GAME = "register_game"
SERVICE_REQUEST_APPROVAL = "request_approval"
SERVICE_DECIDE_APPROVAL = "decide_approval"
SERVICE_START_SESSION = "start_session"
SERVICE_RECORD_EVENT = "record_event"
SERVICE_END_SESSION = "end_session"
SERVICE_SPEND_CURRENCY = "spend_currency"
SERVICE_SYNC_NOW = "sync_now"

# Service fields
FIELD_GAME = "game"
FIELD_GAME_ID = "game_id"
FIELD_CHILD_ID = "child_id"
FIELD_SESSION_ID = "session_id"
FIELD_REQUEST_ID = "request_id"
FIELD_APPROVED = "approved"
FIELD_NOTE = "note"
FIELD_EVENT_TYPE = "event_type"
FIELD_NEW_SCORE = "new_score"
FIELD_PREVIOUS_SCORE = "previous_score"
FIELD_NEW_LEVEL = "new_level"
FIELD_PREVIOUS_LEVEL = "previous_level"
FIELD_FLAGS = "flags"
FIELD_PERSIST = "persist"
FIELD_AMOUNT = "amount"
FIELD_REASON = "reason"

# ------------------------------------------------------------------------------------------------
# Game Content Keys
# ------------------------------------------------------------------------------------------------
CONTENT_GAME_ID = "id"
CONTENT_NAME = "name"
CONTENT_DESCRIPTION = "description"
CONTENT_CATEGORY = "category"
CONTENT_MIN_AGE = "min_age"
CONTENT_MAX_AGE = "max_age"
CONTENT_EDUCATIONAL_TOPICS = "educational_topics"
CONTENT_ESTIMATED_PLAY_MINUTES = "estimated_play_minutes"
CONTENT_REQUIRES_PARENT_APPROVAL = "requires_parent_approval"
CONTENT_SUPPORTS_OFFLINE_PLAY = "supports_offline_play"
CONTENT_ACHIEVEMENTS = "achievements"
CONTENT_REWARD_RULES = "reward_rules"
CONTENT_GAMES = "games"

CONTENT_ACHIEVEMENT_ID = "id"
CONTENT_ICON = "icon"
CONTENT_CURRENCY_REWARD = "currency_reward"
CONTENT_CRITERIA = "criteria"
CONTENT_IS_SECRET = "is_secret"
CONTENT_CRITERIA_TYPE = "type"
CONTENT_CRITERIA_VALUE = "value"
CONTENT_CRITERIA_MAX_SCORE = "max_score"
CONTENT_CRITERIA_MAX_TIME_MINUTES = "max_time_minutes"

CONTENT_ACTION_ID = "action_id"
CONTENT_ACTION_NAME = "action_name"
CONTENT_AMOUNT = "amount"
CONTENT_CONDITIONS = "conditions"

DEFAULT_ACHIEVEMENT_ICON = "mdi:star"
DEFAULT_MIN_AGE = 3
DEFAULT_MAX_AGE = 12
DEFAULT_ESTIMATED_PLAY_MINUTES = 15

# ------------------------------------------------------------------------------------------------
# Reasons and Labels
# ------------------------------------------------------------------------------------------------
REASON_GAME_REWARDS = "Game rewards in {game_id}: {actions}"
REASON_ACHIEVEMENT_REWARD = "Achievement '{name}' in {game_id}"
RECENT_UNLOCKS_LIMIT = 5
