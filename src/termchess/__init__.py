"""
termchess: themed chess trainer core.

Components:
- rules: python-chess Board wrapper that produces immutable MoveRecords
- coordinator: turn orchestration between the human (White) and an automated opponent
- opponents: engine / LLM / random move sources behind one async contract
- commentary/missions: status lines and mission/XP bookkeeping derived from committed moves
- config: settings.yml + environment loading
"""
