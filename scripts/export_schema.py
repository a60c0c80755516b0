#!/usr/bin/env python3
"""
Export JSON Schema for the persisted intake models.

Writes one schema file per model, for consumers of the intake database
(dashboards, the notification renderer).
"""

import json
from pathlib import Path

from warranty_intake.intake.schema import CallRecord, Claim, Contact, Homeowner

MODELS = {
    "call_record": CallRecord,
    "claim": Claim,
    "contact": Contact,
    "homeowner": Homeowner,
}


def export_json_schema(output_dir: str = "data/schema") -> dict:
    """Export the JSON Schema of every persisted model."""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    schemas = {}
    for name, model in MODELS.items():
        schema = model.model_json_schema()
        output_file = output_path / f"{name}.json"
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(schema, f, indent=2, ensure_ascii=False)

        print(f"✓ {schema['title']} -> {output_file}")
        print(f"  Properties: {len(schema['properties'])} fields")
        schemas[name] = schema
    return schemas


def main():
    """Main entry point."""
    print("="*60)
    print("Warranty Call Intake - JSON Schema Export")
    print("="*60)
    export_json_schema()


if __name__ == "__main__":
    main()
