"""
Event consumers: Kafka worker loops that feed status events to the order
index maintainer and chat messages to the chat logs.
"""
