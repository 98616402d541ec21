"""Layer checkpointing utilities."""

import os

import torch


def save_checkpoint(layers, optimizer, epoch, loss, path):
    """
    Save layer weights and optimizer state.

    Args:
        layers: List of layers, in network order
        optimizer: Optimizer shared by the layers (None to skip its state)
        epoch: Current epoch
        loss: Current loss
        path: Path to save checkpoint
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    weights = [weight for layer in layers for weight in layer.weights]
    checkpoint = {
        'epoch': epoch,
        'layers_state_dict': [layer.state_dict() for layer in layers],
        'optimizer_state_dict': optimizer.state_dict(weights) if optimizer is not None else None,
        'loss': loss,
    }

    torch.save(checkpoint, path)
    print(f"Checkpoint saved to {path}")


def load_checkpoint(layers, optimizer, path):
    """
    Load layer weights and optimizer state.

    Args:
        layers: Layers with initialized weights, same structure as when saved
        optimizer: Optimizer to load state into (can be None for inference)
        path: Path to checkpoint

    Returns:
        epoch: Epoch number from checkpoint
        loss: Loss from checkpoint
    """
    # Checkpoints hold numpy arrays, not only tensors
    checkpoint = torch.load(path, weights_only=False)

    if len(checkpoint['layers_state_dict']) != len(layers):
        raise ValueError(f"Checkpoint has {len(checkpoint['layers_state_dict'])} layers, got {len(layers)}")
    for layer, state in zip(layers, checkpoint['layers_state_dict']):
        layer.load_state_dict(state)

    if optimizer is not None and checkpoint['optimizer_state_dict'] is not None:
        weights = [weight for layer in layers for weight in layer.weights]
        optimizer.load_state_dict(checkpoint['optimizer_state_dict'], weights)

    epoch = checkpoint['epoch']
    loss = checkpoint['loss']

    print(f"Checkpoint loaded from {path} (epoch {epoch})")
    return epoch, loss
