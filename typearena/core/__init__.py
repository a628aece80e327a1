from .engine import (
    LiveMetrics,
    Participant,
    ScoreSnapshot,
    SessionFinishedError,
    SessionState,
    TypingMatchEngine,
    TypingSession,
)
from .matching import (
    compute_accuracy,
    compute_wpm,
    count_correct_words,
    error_positions,
    round_half_up,
    update_error_positions,
)
from .messages import (
    ErrorCode,
    ErrorMessage,
    JoinMessage,
    JoinedMessage,
    LeaveMessage,
    LeftMessage,
    NewResultMessage,
    PingMessage,
    PongMessage,
    ResultSummary,
    dump_message,
    parse_client_message,
    parse_server_message,
)
from .passage import BOUNDARY_CHARS, DEFAULT_TIMER_DURATION_SEC, Passage, split_passage_words
from .ranking import (
    LeaderboardEntry,
    LeaderboardStats,
    contains_result,
    merge_entry,
    ranked_rows,
    ranking_key,
    sort_entries,
    summarize,
)

__all__ = [
    "BOUNDARY_CHARS",
    "DEFAULT_TIMER_DURATION_SEC",
    "ErrorCode",
    "ErrorMessage",
    "JoinMessage",
    "JoinedMessage",
    "LeaderboardEntry",
    "LeaderboardStats",
    "LeaveMessage",
    "LeftMessage",
    "LiveMetrics",
    "NewResultMessage",
    "Participant",
    "Passage",
    "PingMessage",
    "PongMessage",
    "ResultSummary",
    "ScoreSnapshot",
    "SessionFinishedError",
    "SessionState",
    "TypingMatchEngine",
    "TypingSession",
    "compute_accuracy",
    "compute_wpm",
    "contains_result",
    "count_correct_words",
    "dump_message",
    "error_positions",
    "merge_entry",
    "parse_client_message",
    "parse_server_message",
    "ranked_rows",
    "ranking_key",
    "round_half_up",
    "sort_entries",
    "split_passage_words",
    "summarize",
    "update_error_positions",
]
