#!/usr/bin/env python3
"""
Train a multi-class network on a CSV data set.

The first column of every row is the class label, the remaining columns are
numeric features (the UCI wine data set has this layout). Each row's features
are standardized, labels are one-hot encoded and a tanh network with a
softmax output is trained with the concurrent batch trainer.

Usage:
    python scripts/train_csv.py data/wine.data [iterations]

The script will:
1. Load and encode the CSV file
2. Split it into training and held-out examples
3. Train, logging progress every 50 iterations
4. Report held-out loss and accuracy
"""

import logging
import os
import sys
from typing import List

import numpy as np

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from deepnet import ActivationType, Config, Mode, Network, new_normal  # noqa: E402
from deepnet.training import Adam, BatchTrainer, Example, Examples  # noqa: E402
from deepnet.training.stats import accuracy, calculate_loss  # noqa: E402
from deepnet.util import standardize  # noqa: E402


def load_examples(filepath: str) -> Examples:
    """
    Load labelled examples from a CSV file.

    Parameters:
    -----------
    filepath : str
        Path to a comma separated file, label in the first column

    Returns:
    --------
    Examples
        One example per row with standardized features and a one-hot response
    """
    print(f"📂 Loading data from: {filepath}")

    data = np.loadtxt(filepath, delimiter=',', ndmin=2)
    labels, features = data[:, 0], data[:, 1:]
    classes = np.unique(labels)

    examples = Examples()
    for label, row in zip(labels, features):
        examples.append(Example(
            input=standardize(row).tolist(),
            response=one_hot(len(classes), int(np.searchsorted(classes, label)))
        ))

    print(f"✅ Loaded {len(examples)} examples with {features.shape[1]} features "
          f"and {len(classes)} classes")
    return examples


def one_hot(classes: int, index: int) -> List[float]:
    encoded = [0.0] * classes
    encoded[index] = 1.0
    return encoded


def main():
    """Main training function."""
    print("=" * 60)
    print("CSV Classifier Training")
    print("=" * 60)

    if len(sys.argv) < 2:
        print(f"❌ Usage: {sys.argv[0]} <data.csv> [iterations]")
        sys.exit(1)

    filepath = sys.argv[1]
    iterations = int(sys.argv[2]) if len(sys.argv) > 2 else 500

    if not os.path.exists(filepath):
        print(f"❌ Error: Data file not found: {filepath}")
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        examples = load_examples(filepath)
        examples.shuffle()
        train, heldout = examples.split(0.8)
        print(f"   - Training: {len(train)} examples")
        print(f"   - Held out: {len(heldout)} examples")

        network = Network(Config(
            inputs=len(examples[0].input),
            layout=[8, len(examples[0].response)],
            activation=ActivationType.TANH,
            mode=Mode.MULTI_CLASS,
            weight=new_normal(1, 0),
            bias=True
        ))

        trainer = BatchTrainer(
            Adam(lr=0.1),
            verbosity=50,
            batch_size=max(len(train) // 2, 1),
            parallelism=min(os.cpu_count() or 1, 12)
        )
        print(f"\n🏋️  Training for {iterations} iterations...")
        trainer.train(network, train, heldout, iterations)

        print("\n" + "=" * 60)
        print("✅ TRAINING COMPLETE!")
        print("=" * 60)
        if heldout:
            print(f"   - Held-out loss: {calculate_loss(network, heldout):.4f}")
            print(f"   - Held-out accuracy: {accuracy(network, heldout):.2%}")

    except Exception as e:
        print(f"\n❌ Error during training: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
