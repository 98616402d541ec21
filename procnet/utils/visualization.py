"""Training curve and attention weight plots."""

from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns


def plot_training_curves(csv_path, save_path=None):
    """
    Plot train / validation loss from a CSVLogger file.

    Args:
        csv_path: Path to the training log
        save_path: Optional path to save plot

    Returns:
        fig: Matplotlib figure
    """
    df = pd.read_csv(csv_path)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(df['epoch'], df['train_loss'], label='Train Loss', marker='o', markersize=3)
    if 'val_loss' in df and df['val_loss'].notna().any():
        ax.plot(df['epoch'], df['val_loss'], label='Val Loss', marker='s', markersize=3)

    if 'is_best_loss' in df.columns:
        best = df[df['is_best_loss'].astype(str) == 'True']
        if len(best):
            ax.scatter(best['epoch'], best['val_loss'], color='red', zorder=5, label='Best')

    ax.set_xlabel('Epoch', fontsize=12)
    ax.set_ylabel('Loss', fontsize=12)
    ax.set_title('Training Curves', fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.legend()
    plt.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved training curves to: {save_path}")
    return fig


def plot_attention_weights(weights, input_labels=None, title=None, save_path=None):
    """
    Plot attention heatmap.

    Args:
        weights: (timesteps, number_of_inputs) array from AttentionLayer.attention_weights()
        input_labels: Optional labels for the attended inputs
        title: Optional custom title
        save_path: Optional path to save plot

    Returns:
        fig: Matplotlib figure
    """
    weights = np.asarray(weights)
    timesteps, num_inputs = weights.shape
    if input_labels is None:
        input_labels = [f'Input {k}' for k in range(num_inputs)]

    fig, ax = plt.subplots(figsize=(max(6, num_inputs * 0.8), max(4, timesteps * 0.3)))
    sns.heatmap(weights, xticklabels=input_labels, yticklabels=list(range(timesteps)),
                cmap='viridis', cbar=True, ax=ax, vmin=0, vmax=1,
                linewidths=0.5, linecolor='white')

    ax.set_title(title or 'Attention Weights', fontsize=14, pad=20)
    ax.set_xlabel('Inputs', fontsize=12)
    ax.set_ylabel('Timestep', fontsize=12)
    plt.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved attention plot to: {save_path}")
    return fig
