"""
Generate Seed Training Data for the Transaction Classifier

Writes the Vietnamese seed corpus to CSV so it can be inspected, edited or
used to evaluate a trained model offline.
"""

import csv
from pathlib import Path

from txnlens.ml.amount_extractor import parse_amount_vn
from txnlens.ml.seed_corpus import SEED_CATEGORIES, generate_seed_samples


def generate_training_dataset(
    samples_per_category: int = 30,
    output_file: str = "training_data.csv",
    seed: int = 42,
) -> str:
    """
    Generate a CSV file with labelled seed notes.

    Args:
        samples_per_category: Number of samples to generate per category
        output_file: Output CSV filename
        seed: Random seed

    Returns:
        Path to generated CSV file
    """
    rows = generate_seed_samples(samples_per_category, seed=seed)
    for row in rows:
        amount = parse_amount_vn(row["text"])
        row["amount"] = "" if amount is None else str(amount)

    output_path = Path(output_file)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        fieldnames = ["text", "amount", "io", "category_id", "category_name"]
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)

    print(f"✅ Generated {len(rows)} training notes")
    print(f"   Categories: {len(SEED_CATEGORIES)}")
    print(f"   Samples per category: {samples_per_category}")
    print(f"   Output file: {output_path.absolute()}")

    return str(output_path.absolute())


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate seed training data for transaction classification")
    parser.add_argument(
        "--samples",
        type=int,
        default=30,
        help="Number of samples per category (default: 30)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="training_data.csv",
        help="Output CSV filename (default: training_data.csv)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed (default: 42)",
    )

    args = parser.parse_args()
    generate_training_dataset(args.samples, args.output, args.seed)
