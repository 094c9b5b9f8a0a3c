"""Noise XX sessions, CBOR framing, connections and a pooled client."""