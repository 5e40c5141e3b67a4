"""Centralized constants for FinMoE system configuration."""


# ===== WORKERS =====
class WorkerConstants:
    CREDIT_AGENT_ID = "credit-agent"
    FRAUD_AGENT_ID = "fraud-agent"
    ESG_AGENT_ID = "esg-agent"

    NAMES = {
        CREDIT_AGENT_ID: "Credit Check Agent",
        FRAUD_AGENT_ID: "Fraud Detection Agent",
        ESG_AGENT_ID: "ESG Analysis Agent",
    }


# ===== LOAD MODEL =====
class LoadConstants:
    MAX_LOAD = 100.0
    OVERLOAD_THRESHOLD = 90.0

    # Randomized initial load at process start
    INITIAL_LOAD_MIN = 10.0
    INITIAL_LOAD_MAX = 40.0

    # Display metrics derived from load
    TOKENS_PER_LOAD_POINT = 10
    TOKENS_JITTER_MAX = 200
    RESPONSE_TIME_BASE = 1.0
    RESPONSE_TIME_LOAD_FACTOR = 2.0
    RESPONSE_TIME_JITTER_MAX = 0.5


# ===== ROUTING =====
class RoutingConstants:
    WEIGHT_SPECIALIZATION = 0.35
    WEIGHT_CURRENT_LOAD = 0.40
    WEIGHT_RESPONSE_TIME = 0.25

    MAX_TOKENS = 300
    TEMPERATURE = 0.3


# ===== PARSING =====
class ParsingConstants:
    DEFAULT_SCORE = 75
    DEFAULT_CONFIDENCE = 80
    REASONING_PREVIEW_CHARS = 200

    PERCENT_SCORE_MIN = 0
    PERCENT_SCORE_MAX = 100
    CREDIT_SCORE_MIN = 300
    CREDIT_SCORE_MAX = 850


# ===== DECISION =====
class DecisionConstants:
    FRAUD_DECLINE_PROBABILITY = 0.6
    CREDIT_DECLINE_RISK_LEVEL = "high"
    CREDIT_DECLINE_SCORE_BELOW = 600
    ESG_HEALTHY_MEAN = 50.0
    RATIONALE_SEPARATOR = " | "


# ===== STORAGE =====
class StorageConstants:
    MAX_REQUEST_HISTORY = 100
    MAX_LOG_HISTORY = 500
    DEFAULT_LOG_PAGE = 50


# ===== MONITORING =====
class MonitoringConstants:
    DEFAULT_BATCH_SIZE = 20
    DEFAULT_NAMESPACE = "FinMoE"


# ===== SIMULATION =====
class SimulationConstants:
    REQUEST_TYPES = ("Loan Application", "Insurance Claim", "ESG Report", "Credit Check")
    MIN_INTERVAL_SECONDS = 8.0
    MAX_INTERVAL_SECONDS = 15.0
