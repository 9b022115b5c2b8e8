"""Rendezvous: WebRTC signaling relay core."""
