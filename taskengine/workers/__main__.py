from taskengine.workers.worker import main

main()
