"""
Main Execution Script for the Pressure Scheduler.
Loads a horizon and its queries from JSON, schedules them and exports the materials.
"""

import os
import sys
import logging
import json

# Add current directory to path so imports work
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from pressure_scheduler.engine import PressureScheduler
from pressure_scheduler.errors import ConflictError
from allocation_models import Query, SchedulerConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
INPUT_FILENAME = "data/sample_queries.json"
OUTPUT_FILENAME = "schedule_output.json"
# ---------------------


def load_input(filename: str):
    """
    Helper to load JSON data and reconstruct Pydantic objects.
    """
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.error(f"❌ Input file {filename} not found or invalid: {e}")
        return None, None

    logger.info(f"📂 Loading queries from {filename}...")
    config = SchedulerConfig(**data['config'])
    queries = [Query(**item) for item in data.get('queries', [])]
    logger.info(f"✅ Loaded {len(queries)} queries over a {config.horizon.length / 3600000:.1f}h horizon.")
    return config, queries


def export_schedule(state, queries, filename: str):
    """
    Serializes the scheduler state into JSON.
    """
    logger.info(f"💾 Exporting schedule to {filename}...")

    data = {
        "queries": {str(q.id): q.model_dump(mode='json') for q in queries},
        "materials": [m.model_dump(mode='json') for m in state.materials],
        "statistics": state.get_statistics(),
        "conflicts": state.get_conflict_report(),
    }

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info("✅ Schedule exported.")


def main(input_filename: str = INPUT_FILENAME, output_filename: str = OUTPUT_FILENAME):
    logger.info("🚀 Starting Pressure Scheduler...")

    # --- PHASE 1: DATA ACQUISITION ---
    config, queries = load_input(input_filename)
    if config is None:
        logger.error("❌ No data available. Exiting.")
        return None

    # --- PHASE 2: SCHEDULING ---
    scheduler = PressureScheduler(config, queries)
    try:
        scheduler.run()
    except ConflictError as e:
        logger.warning(f"⚠️ Schedule stopped on a conflict: {e}")

    # --- PHASE 3: REPORTING ---
    state = scheduler.state
    stats = state.get_statistics()

    print("\n" + "="*50)
    print("📊 FINAL EXECUTION REPORT")
    print("="*50)
    print(stats)

    if state.conflicts:
        print("\n🔍 CONFLICT ANALYSIS")
        for conflict in state.get_conflict_report():
            print(f"❌ [Q{conflict['victim']}] {conflict['query_name']}")
            print(f"   Reason: {conflict['reason']}")
            for rejection in conflict['user_state_rejections']:
                print(f"   Rejected: {rejection}")

    # --- PHASE 4: EXPORT ---
    export_schedule(state, queries, output_filename)
    return state


if __name__ == "__main__":
    main(*sys.argv[1:3])
