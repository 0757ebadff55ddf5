from customer_merge.runners.local import LocalMergePipeline

__all__ = ["LocalMergePipeline"]
