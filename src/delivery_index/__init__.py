"""
Delivery Order Index

Consumes delivery-order status events and chat messages from Kafka and keeps
queryable secondary indexes of them in Redis.

┌───────────┐     ┌─────────────────┐     ┌──────────────┐     ┌─────────┐
│ Publisher │────▶│ Kafka           │────▶│ Consumer     │────▶│ Redis   │
│ (producer)│     │ key = order id  │     │ workers      │     │ indexes │
└───────────┘     └─────────────────┘     └──────────────┘     └────┬────┘
                                                                    │
                                          IndexService (queries) ◀──┘
"""

__version__ = "1.0.0"
