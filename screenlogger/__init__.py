"""
ScreenLogger: a screen on/off logger whose worker runs as a detached OS
process, tracked by a pid file and controlled by a small supervisor.
"""
