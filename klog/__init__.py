"""klog backend: blog API with cursor pagination and deferred media cleanup."""
