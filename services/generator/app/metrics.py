from prometheus_client import Counter

ITEMS_GENERATED = Counter(
    "discovery_items_generated_total",
    "Items accepted by generation cycles",
    ["category"],
)
ADAPTER_FAILURES = Counter(
    "discovery_adapter_failures_total",
    "Source adapter invocations that failed and contributed nothing",
    ["adapter"],
)
CYCLES = Counter(
    "discovery_cycles_total",
    "Generation cycles by outcome",
    ["outcome"],
)
