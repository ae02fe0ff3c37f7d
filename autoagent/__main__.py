from autoagent.interfaces.cli import main

main()
