# AgencyBoard: project task boards with drag-and-drop moves
