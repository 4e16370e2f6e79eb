import os

LLAMA_YIELDS_URL = os.getenv("LLAMA_YIELDS_URL", "https://yields.llama.fi")
POOLS_URL = f"{LLAMA_YIELDS_URL}/pools"
CHART_URL = f"{LLAMA_YIELDS_URL}/chart"

CACHE_TTL_SECONDS = int(os.getenv("LST_CACHE_TTL", 15 * 60))   # 15 minutes
REQUEST_TIMEOUT = float(os.getenv("LST_REQUEST_TIMEOUT", 10))
HISTORY_WORKERS = int(os.getenv("LST_HISTORY_WORKERS", 8))

TOP_N = 5
SEARCH_K = 5

# Brand names that get their own section in the general overview
HIGHLIGHTED_PROJECTS = tuple(
    p.strip().lower() for p in os.getenv("LST_HIGHLIGHTED", "bifrost").split(",") if p.strip()
)

LLM_MODEL = os.getenv("LST_LLM_MODEL", "deepseek-chat")
LLM_BASE_URL = os.getenv("LST_LLM_BASE_URL", "https://api.deepseek.com")

# Liquid staking projects, matched exactly (case-insensitive) against pool["project"]
LST_PROJECTS = (
    "zlot", "ankr", "lido", "stakehound", "stakewise-v2", "stafi", "sharedstake",
    "steakbank-finance", "marinade-liquid-staking", "karura-liquid-staking",
    "meta-pool-near", "rocket-pool", "geth", "asol", "stader", "ifpool", "jpool",
    "neoburger", "pstake-lsd", "benqi-staked-avax", "klaystation",
    "galgo-liquid-governance", "sicx", "steak", "thunderpokt", "stakeeasy",
    "linear-protocol", "bifrost-liquid-staking", "tenderize-v1", "argo-finance",
    "acala-liquid-staking", "eris-protocol", "acala-lcdot", "filet-finance", "algem",
    "skcs", "parallel-polkadot-crowdloan", "parallel-polkadot-liquid-staking",
    "exinpool", "stcelo", "eversol", "interlay-staking", "frax-ether", "stake-ly",
    "geode", "amulet-liquidity-staking", "ditto", "tortuga", "increment-liquid-staking",
    "stlos-liquid-staking", "yield-yak-staked-avax", "stride", "tranchess-ether",
    "kava-liquid", "strx-finance", "jito", "bifrost-liquid-crowdloan", "pepetam-swaves",
    "veno-finance", "stake-link-liquid", "nf3-ape", "okc-liquid-staking", "nucleon",
    "lockless-protocol", "hord", "trufin-legacy-vaults", "wynd-lsd", "glif",
    "starfish-liquid-staking", "stfil", "swell-liquid-staking", "stakehouse",
    "quicksilver-protocol", "sft-protocol", "binance-staked-eth", "blazestake",
    "origin-ether", "creth2", "scanto", "nodedao", "avely-staking", "mfil-protocol",
    "hashmix-fil", "liquid-collective", "stkd-scrt", "minefi", "swapscanner-lsd",
    "stakedicp", "neopin-liquid", "gogopool", "xalgo-liquid-staking", "collectif-dao",
    "hashking", "bemo", "meter-liquid-staking", "hatom-liquid-staking", "trustake",
    "jewelswap-liquid-staking",
)
