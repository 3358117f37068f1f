"""QUIC v1 packet processing, connections and server."""