"""
Test suite for the ProtoNN trainer.

Covers data ingestion, normalization, initialization, alternating
minimization, binary export and the command line.

Reference: Gupta et al. (2017) - ProtoNN: Compressed and Accurate kNN for
Resource-scarce Devices
"""
